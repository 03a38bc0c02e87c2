# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
beliefs.py — Layer 2: event-driven tribal beliefs and their diffusion.

A tribe that lives through a famine, a battle, a good trade or a disaster
may come to believe something about it.  Beliefs bend harvests, diplomacy
and culture, fade unless the tribe is doing well, and spread to neighbours
that trust the tribe holding them.

Call order each tick (stage 11 of sim.step):
    create_belief_from_event -> maybe_add_belief   (per tribe event)
    diffuse_belief                                (per interacting pair)
    update_beliefs_lifecycle                      (per tribe)
    apply_belief_effects_on_culture               (per tribe)
"""

from dataclasses import dataclass, fields, replace

BELIEF_LIMIT   = 5
BELIEF_DECAY   = 0.01
MIN_STRENGTH   = 0.06
DIFFUSE_FACTOR = 0.7

EVENT_TYPES = ('famine', 'mortality', 'victory_attack', 'success_trade', 'catastrophe')


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def _clamp01(v: float) -> float:
    return _clamp(v, 0.0, 1.0)


@dataclass(frozen=True)
class BeliefEffect:
    harvest_multiplier: float = 1.0
    trust_gain_bonus:   float = 0.0
    peace_bias:         float = 0.0
    conflict_bias:      float = 0.0
    stability_bonus:    float = 0.0
    war_shift:          float = 0.0
    trade_shift:        float = 0.0
    ecology_shift:      float = 0.0


EFFECT_FIELDS = tuple(f.name for f in fields(BeliefEffect))


@dataclass(frozen=True)
class Belief:
    id:       str
    type:     str
    trigger:  str
    effect:   BeliefEffect
    strength: float = 0.3
    age:      int   = 0


@dataclass(frozen=True)
class BeliefModifiers:
    """Per-tribe aggregate read by the harvest and interaction stages."""
    harvest_multiplier: float = 1.0
    trust_gain_bonus:   float = 0.0
    peace_bias:         float = 0.0
    conflict_bias:      float = 0.0


# ── Event → belief templates ───────────────────────────────────────────────
TEMPLATES: dict[str, tuple[str, str, BeliefEffect]] = {
    'famine':         ('survival', 'famine_severe',
                       BeliefEffect(harvest_multiplier=0.9, stability_bonus=0.02)),
    'mortality':      ('ritual',   'sacrifice_rite',
                       BeliefEffect(stability_bonus=0.03)),
    'victory_attack': ('war',      'war_destiny',
                       BeliefEffect(conflict_bias=0.12, war_shift=0.012)),
    'success_trade':  ('trade',    'trader_path',
                       BeliefEffect(peace_bias=0.1, trust_gain_bonus=0.04, trade_shift=0.01)),
    'catastrophe':    ('ecology',  'sacred_forest',
                       BeliefEffect(harvest_multiplier=0.85, ecology_shift=0.015)),
}


def make_belief(id: str, type: str, trigger: str, effect: BeliefEffect | None = None,
                strength: float = 0.3, age: int = 0) -> Belief:
    return Belief(id, type, trigger, effect or BeliefEffect(),
                  _clamp01(strength), max(0, int(age)))


def create_belief_from_event(tribe, event_type: str, intensity: float, tick: int,
                             roll: float) -> Belief | None:
    """Maybe turn a tribe event into a belief.  None when the roll misses."""
    template = TEMPLATES.get(event_type)
    if template is None:
        return None
    spirit = tribe.culture['spirituality']
    chance = _clamp(0.05 + spirit * 0.25 + intensity * 0.35 + roll * 0.05, 0.0, 0.65)
    if roll > chance:
        return None
    btype, trigger, effect = template
    return make_belief(
        id       = f"{tribe.id}-{trigger}-{tick}-{int(roll * 10000)}",
        type     = btype,
        trigger  = trigger,
        effect   = effect,
        strength = 0.25 + intensity * 0.5 + spirit * 0.2,
    )


def maybe_add_belief(tribe, belief: Belief | None) -> bool:
    """Prepend `belief` unless the tribe already holds its trigger."""
    if belief is None:
        return False
    if any(b.trigger == belief.trigger for b in tribe.beliefs):
        return False
    tribe.beliefs = [belief] + list(tribe.beliefs)
    del tribe.beliefs[BELIEF_LIMIT:]
    return True


def collect_belief_modifiers(beliefs) -> BeliefModifiers:
    harvest = 1.0
    trust = peace = conflict = 0.0
    for b in beliefs:
        w = b.strength
        harvest  *= 1 + (b.effect.harvest_multiplier - 1) * w
        trust    += b.effect.trust_gain_bonus * w
        peace    += b.effect.peace_bias * w
        conflict += b.effect.conflict_bias * w
    return BeliefModifiers(_clamp(harvest, 0.65, 1.2), trust, peace, conflict)


def apply_belief_effects_on_culture(tribe) -> None:
    for b in tribe.beliefs:
        w = b.strength
        tribe.culture['war']     = _clamp01(tribe.culture['war'] + b.effect.war_shift * w)
        tribe.culture['trade']   = _clamp01(tribe.culture['trade'] + b.effect.trade_shift * w)
        tribe.culture['ecology'] = _clamp01(tribe.culture['ecology'] + b.effect.ecology_shift * w)
        tribe.stability          = max(0.0, tribe.stability + b.effect.stability_bonus * w)


def update_beliefs_lifecycle(tribe, feedback: float) -> None:
    kept = []
    for b in tribe.beliefs:
        strength = _clamp01(b.strength + feedback * 0.04 - BELIEF_DECAY)
        if strength >= MIN_STRENGTH:
            kept.append(replace(b, strength=strength, age=b.age + 1))
    tribe.beliefs = kept[:BELIEF_LIMIT]


def lifecycle_feedback(stability: float) -> float:
    return 0.4 if stability > 1 else -0.2


def diffuse_belief(source, target, trust: float, roll: float) -> bool:
    """Offer the source's leading belief to the target.

    Returns True when the roll succeeded, even if the target already held
    the trigger and so nothing was copied.
    """
    if not source.beliefs:
        return False
    lead   = source.beliefs[0]
    chance = _clamp(0.02 + max(0.0, trust) * 0.25 + lead.strength * 0.25, 0.0, 0.45)
    if roll > chance:
        return False
    copied = replace(
        lead,
        id       = f"{target.id}-diff-{lead.trigger}-{int(roll * 10000)}",
        strength = _clamp01(lead.strength * DIFFUSE_FACTOR),
        age      = 0,
    )
    maybe_add_belief(target, copied)
    return True


def summarize_beliefs(tribes) -> dict:
    totals: dict[str, float] = {}
    count = 0
    for tribe in tribes:
        for b in tribe.beliefs:
            count += 1
            totals[b.trigger] = totals.get(b.trigger, 0.0) + b.strength
    ranked = sorted(totals.items(), key=lambda kv: -kv[1])[:3]
    return {
        'total_beliefs': count,
        'top_beliefs':   [{'trigger': t, 'strength': round(s, 2)} for t, s in ranked],
    }
