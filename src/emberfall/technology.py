# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
technology.py — Layer 5: emergent technologies shaped by tribal culture.

Each tribe researches one "emergent" technology named after its dominant
culture axis.  When the dominant axis changes a new entry starts from zero;
earlier entries keep their levels and effects but stop progressing.

Call order each tick (stage 12 of sim.step):
    update_tribe_technology(tribe, surplus, positive_interactions)

Public helpers used by other modules:
    apply_storage_cap(base, bonus)  -> float
    summarize_technology(tribes)    -> dict
"""

from dataclasses import dataclass, field, replace

INITIAL_COST  = 18.0
COST_GROWTH   = 1.5
SLOWDOWN      = 0.35    # per level, divides the progress rate
BONUS_LIMIT   = 0.5


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def _bonus(v: float) -> float:
    return _clamp(v, 0.0, BONUS_LIMIT)


@dataclass(frozen=True)
class TechEffects:
    efficiency_bonus: float = 0.0
    storage_bonus:    float = 0.0
    movement_bonus:   float = 0.0
    defense_bonus:    float = 0.0
    trade_bonus:      float = 0.0

    def clamped(self) -> 'TechEffects':
        return TechEffects(
            _bonus(self.efficiency_bonus), _bonus(self.storage_bonus),
            _bonus(self.movement_bonus), _bonus(self.defense_bonus),
            _bonus(self.trade_bonus),
        )


@dataclass(frozen=True)
class Technology:
    id:       str
    level:    int   = 0
    progress: float = 0.0
    cost:     float = INITIAL_COST
    effects:  TechEffects = field(default_factory=TechEffects)

    @property
    def focus(self) -> str:
        return self.id.replace('emergent-', '', 1)


def make_technology(id: str, level=0, progress=0.0, cost=INITIAL_COST,
                    effects: TechEffects | None = None) -> Technology:
    """Technology with every field pushed into its legal range."""
    return Technology(
        id       = id,
        level    = max(0, int(level)),
        progress = max(0.0, float(progress)),
        cost     = max(1.0, float(cost)),
        effects  = (effects or TechEffects()).clamped(),
    )


def compute_technology_effects(level: int, culture: dict, focus: str) -> TechEffects:
    base = min(0.5, 0.02 * max(0, level)
               + culture.get('education', 0) * 0.08
               + culture.get('tech', 0) * 0.08)
    return TechEffects(
        efficiency_bonus = base * (1.2 if focus == 'tech' else 0.7) + culture.get('tech', 0) * 0.1,
        storage_bonus    = base * (1.0 if focus == 'ecology' else 0.7) + culture.get('ecology', 0) * 0.08,
        movement_bonus   = base * (1.0 if focus == 'war' else 0.6) + culture.get('war', 0) * 0.06,
        defense_bonus    = base * (1.2 if focus == 'war' else 0.6) + culture.get('spirituality', 0) * 0.05,
        trade_bonus      = base * (1.3 if focus == 'trade' else 0.7) + culture.get('trade', 0) * 0.1,
    ).clamped()


def compute_tech_progress_rate(culture: dict, members: int, stability: float,
                               surplus: float, positive_interactions: int) -> float:
    size_f        = min(1.2, members / 25)
    stability_f   = _clamp(stability / 2, 0.2, 1.2)
    surplus_f     = _clamp(surplus / 35, 0.0, 1.4)
    interaction_f = min(0.8, positive_interactions * 0.18)
    rate = (0.06
            + culture.get('tech', 0) * 0.22
            + culture.get('education', 0) * 0.18
            + size_f * 0.07
            + stability_f * 0.08
            + surplus_f * 0.09
            + interaction_f)
    return max(0.0, rate)


def collect_technology_effects(technologies: dict) -> TechEffects:
    """Clamped sum of every technology's effects."""
    sums = [0.0] * 5
    for tech in technologies.values():
        e = tech.effects
        for i, v in enumerate((e.efficiency_bonus, e.storage_bonus, e.movement_bonus,
                               e.defense_bonus, e.trade_bonus)):
            sums[i] += v
    return TechEffects(*sums).clamped()


def advance_technology(tech: Technology, rate: float, culture: dict) -> Technology:
    """Add `rate` progress and level up as many times as it pays for."""
    progress = tech.progress + max(0.0, rate)
    level    = tech.level
    cost     = tech.cost
    effects  = tech.effects
    while progress >= cost:
        progress -= cost
        level    += 1
        cost     *= COST_GROWTH
        effects   = compute_technology_effects(level, culture, tech.focus)
    progress = _clamp(progress, 0.0, cost - 1e-6)
    return replace(tech, level=level, progress=progress, cost=cost, effects=effects)


def tech_surplus(tribe) -> float:
    return max(0.0, tribe.shared_resources['food'] - 2 * len(tribe.members))


def update_tribe_technology(tribe, surplus: float = 0.0, positive_interactions: int = 0) -> None:
    focus   = tribe.dominant_culture_axis()
    tech_id = f"emergent-{focus}"
    tech    = tribe.technologies.get(tech_id)
    if tech is None:
        tech = make_technology(tech_id, effects=compute_technology_effects(0, tribe.culture, focus))

    slowdown = 1 / (1 + tech.level * SLOWDOWN)
    rate     = compute_tech_progress_rate(tribe.culture, len(tribe.members), tribe.stability,
                                          surplus, positive_interactions) * slowdown

    tribe.technologies       = {**tribe.technologies, tech_id: advance_technology(tech, rate, tribe.culture)}
    tribe.tech_progress_rate = rate
    tribe.global_tech_level  = sum(t.level for t in tribe.technologies.values())
    tribe.tech_effects       = collect_technology_effects(tribe.technologies)


def apply_storage_cap(base_cap: float, storage_bonus: float) -> float:
    return max(0.0, base_cap * (1 + _clamp(storage_bonus, 0.0, BONUS_LIMIT)))


def summarize_technology(tribes) -> dict:
    if not tribes:
        return {'mean_tech_level': 0.0, 'total_tech_levels': 0, 'tech_level_distribution': {}}
    dist: dict[int, int] = {}
    total = 0
    for tribe in tribes:
        level = max(0, int(tribe.global_tech_level))
        total += level
        dist[level] = dist.get(level, 0) + 1
    return {
        'mean_tech_level':         total / len(tribes),
        'total_tech_levels':       total,
        'tech_level_distribution': dict(sorted(dist.items())),
    }
