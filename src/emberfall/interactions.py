# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
interactions.py — Layer 4: tribe-to-tribe diplomacy, raids and the trust ledger.

Each resolved pair of tribes picks one action per side, the pair of actions
is settled by a fixed payoff table, and the outcome is folded into a memory
record keyed by the unordered pair.  That record (trust, last actions, last
tick) is the only thing that carries grudges and alliances across ticks.

Call order each tick (stage 10 of sim.step):
    candidate_pairs -> decide_tribe_action (x2) -> resolve_interaction
        -> apply_casualties (x2) -> update_interaction_memory
"""

from dataclasses import dataclass, replace

ACTIONS = ('trade', 'cooperate', 'betray', 'attack', 'avoid')
HOSTILE = ('attack', 'betray')


@dataclass(frozen=True)
class Policy:
    """Decision thresholds and payoff constants.  Tuned by hand."""
    # ── pairing ───────────────────────────────────────────────────────────
    max_distance:        float = 12
    max_pairs:           int   = 5
    cooldown_ticks:      int   = 4
    cooldown_trust:      float = -0.5
    # ── decision ──────────────────────────────────────────────────────────
    avoid_trust:         float = -0.2
    avoid_conflict:      float = 0.45
    attack_conflict:     float = 0.7
    attack_power:        float = 0.95
    betray_margin:       float = 0.1
    trade_peace:         float = 0.72
    cooperate_peace:     float = 0.52
    vulnerable_power:    float = 0.8
    vulnerable_stab:     float = 0.5
    # ── payoffs ───────────────────────────────────────────────────────────
    trade_trust:         float = 0.08
    trade_stability:     float = 0.04
    coop_trust:          float = 0.07
    coop_stability:      float = 0.06
    betray_trust:        float = -0.16
    betray_miss_trust:   float = -0.08
    attack_trust:        float = -0.22
    avoid_trust_delta:   float = -0.01
    mismatch_trust:      float = -0.03


POLICY = Policy()


@dataclass(frozen=True)
class InteractionMemory:
    last_action_a:      str   = 'avoid'
    last_action_b:      str   = 'avoid'
    trust_score:        float = 0.0
    last_tick:          int   = -1
    total_trades:       int   = 0
    total_cooperations: int   = 0
    total_betrays:      int   = 0
    total_attacks:      int   = 0
    total_avoids:       int   = 0

    def swapped(self) -> 'InteractionMemory':
        """The same record seen from the other side of the pair."""
        return replace(self, last_action_a=self.last_action_b, last_action_b=self.last_action_a)


@dataclass
class Outcome:
    event_type:  str
    dead_a:      int   = 0
    dead_b:      int   = 0
    trust_delta: float = 0.0


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def clamp_trust(v: float) -> float:
    return _clamp(v, -1.0, 1.0)


def pair_key(id_a: str, id_b: str) -> str:
    return f"{id_a}|{id_b}" if id_a < id_b else f"{id_b}|{id_a}"


def power_score(tribe) -> float:
    return len(tribe.members) * (0.8 + tribe.stability * 0.3) + tribe.shared_resources['food'] * 0.03


# ══════════════════════════════════════════════════════════════════════════
# Decision
# ══════════════════════════════════════════════════════════════════════════

def decide_tribe_action(tribe, other, memory: InteractionMemory | None, roll: float = 0.5,
                        peace_bias: float = 0.0, conflict_bias: float = 0.0,
                        policy: Policy = POLICY) -> str:
    """Pick `tribe`'s action toward `other`.  memory.last_action_b is the other side's."""
    memory = memory or InteractionMemory()
    trust  = clamp_trust(memory.trust_score)
    p_self, p_other = power_score(tribe), power_score(other)
    relative = 1.0 if p_other <= 0 else p_self / p_other
    c = tribe.culture

    peace = (c['trade'] * 0.35 + c['education'] * 0.2 + c['ecology'] * 0.12
             + c['spirituality'] * 0.12 + (trust + 1) * 0.15)
    conflict = (c['war'] * 0.45 + (1 - trust) * 0.2
                + (0.15 if memory.last_action_b in HOSTILE else 0.0)
                + (0.1 if relative > 1.2 else 0.0))
    noise      = (roll - 0.5) * 0.2 * (1 - c['education'])
    peace     += peace_bias + noise
    conflict  += conflict_bias - noise
    vulnerable = relative < policy.vulnerable_power or tribe.stability < policy.vulnerable_stab

    if vulnerable and trust < policy.avoid_trust and conflict > policy.avoid_conflict:
        return 'avoid'
    if conflict > policy.attack_conflict and relative > policy.attack_power:
        return 'attack'
    if conflict > peace + policy.betray_margin:
        return 'betray'
    if peace > policy.trade_peace:
        return 'trade'
    if peace > policy.cooperate_peace:
        return 'cooperate'
    return 'avoid'


# ══════════════════════════════════════════════════════════════════════════
# Payoffs
# ══════════════════════════════════════════════════════════════════════════

def _steal(victim, thief, amount: float) -> float:
    amount = max(0.0, min(amount, victim.shared_resources['food']))
    victim.shared_resources['food'] = round(victim.shared_resources['food'] - amount, 2)
    thief.shared_resources['food']  = round(thief.shared_resources['food'] + amount, 2)
    return amount


def _settle(tribe) -> None:
    for k in tribe.shared_resources:
        tribe.shared_resources[k] = max(0.0, round(tribe.shared_resources[k], 2))
    tribe.stability = max(0.0, round(tribe.stability, 2))


def resolve_interaction(tribe_a, tribe_b, action_a: str, action_b: str, roll: float = 0.5,
                        policy: Policy = POLICY) -> Outcome:
    """Apply the payoff for (action_a, action_b) to both tribes in place."""
    out = Outcome(action_a if action_a == action_b else f"{action_a}-{action_b}")
    food_a = tribe_a.shared_resources['food']
    food_b = tribe_b.shared_resources['food']

    if action_a == 'trade' and action_b == 'trade':
        gain = 1 + min(3.0, food_a, food_b) * 0.15
        tribe_a.shared_resources['food'] += gain
        tribe_b.shared_resources['food'] += gain
        tribe_a.stability += policy.trade_stability
        tribe_b.stability += policy.trade_stability
        out.trust_delta = policy.trade_trust

    elif action_a == 'cooperate' and action_b == 'cooperate':
        gain = min(2.0, food_a * 0.1, food_b * 0.1)
        tribe_a.shared_resources['food'] += gain
        tribe_b.shared_resources['food'] += gain
        tribe_a.stability += policy.coop_stability
        tribe_b.stability += policy.coop_stability
        out.trust_delta = policy.coop_trust

    elif (action_a == 'betray' and action_b != 'attack') or \
         (action_b == 'betray' and action_a != 'attack'):
        thief, victim = (tribe_a, tribe_b) if action_a == 'betray' else (tribe_b, tribe_a)
        stolen = _steal(victim, thief, 4 + roll * 2)
        thief.stability  += 0.01
        victim.stability -= 0.08
        out.trust_delta = policy.betray_trust if stolen > 0 else policy.betray_miss_trust

    elif 'attack' in (action_a, action_b):
        intensity = 0.5 + abs(tribe_a.culture['war'] - tribe_b.culture['war']) * 0.5 + roll * 0.3
        p_a, p_b  = power_score(tribe_a), power_score(tribe_b)
        total     = max(1.0, p_a + p_b)
        out.dead_a = min(max(0, int(p_b / total * intensity * 2)), max(0, len(tribe_a.members) - 1))
        out.dead_b = min(max(0, int(p_a / total * intensity * 2)), max(0, len(tribe_b.members) - 1))
        if p_a > p_b:
            _steal(tribe_b, tribe_a, 3 + roll * 2)
        elif p_b > p_a:
            _steal(tribe_a, tribe_b, 3 + roll * 2)
        tribe_a.stability -= 0.12 + out.dead_a * 0.04
        tribe_b.stability -= 0.12 + out.dead_b * 0.04
        out.trust_delta = policy.attack_trust

    elif action_a == 'avoid' and action_b == 'avoid':
        tribe_a.stability -= 0.01
        tribe_b.stability -= 0.01
        out.trust_delta = policy.avoid_trust_delta

    else:
        tribe_a.stability -= 0.005
        tribe_b.stability -= 0.005
        out.trust_delta = policy.mismatch_trust

    _settle(tribe_a)
    _settle(tribe_b)
    return out


def apply_casualties(tribe, count: int, agents: dict, defense_bonus: float = 0.0) -> list:
    """Kill up to `count` (less defense) weakest live members, never the last one.

    Returns the ids of the fallen.
    """
    adjusted = max(0, int(count * (1 - _clamp(defense_bonus, 0.0, 0.5))))
    living   = sorted(
        (agents[m] for m in tribe.members if m in agents and agents[m].is_alive),
        key=lambda a: a.energy,
    )
    fallen = living[:min(adjusted, max(0, len(living) - 1))]
    for agent in fallen:
        agent.die('battle')
    return [a.id for a in fallen]


_TALLY = {
    'trade':     'total_trades',
    'cooperate': 'total_cooperations',
    'betray':    'total_betrays',
    'attack':    'total_attacks',
    'avoid':     'total_avoids',
}


def update_interaction_memory(memory: InteractionMemory | None, action_a: str, action_b: str,
                              trust_delta: float, tick: int) -> InteractionMemory:
    memory = memory or InteractionMemory()
    counts = {}
    for action in (action_a, action_b):
        name = _TALLY.get(action)
        if name:
            counts[name] = counts.get(name, getattr(memory, name)) + 1
    return replace(
        memory,
        last_action_a = action_a,
        last_action_b = action_b,
        last_tick     = tick,
        trust_score   = clamp_trust(clamp_trust(memory.trust_score) + trust_delta),
        **counts,
    )


# ══════════════════════════════════════════════════════════════════════════
# Pairing
# ══════════════════════════════════════════════════════════════════════════

def _center_distance(a, b) -> float:
    return max(abs(a.center['x'] - b.center['x']), abs(a.center['y'] - b.center['y']))


def candidate_pairs(tribes: list, policy: Policy = POLICY) -> list:
    """Nearest-first tribe pairs within range, at most policy.max_pairs.

    Each pair is ordered so its first tribe owns the first half of the pair key.
    """
    pairs = []
    for i, a in enumerate(tribes):
        for b in tribes[i + 1:]:
            d = _center_distance(a, b)
            if d < policy.max_distance:
                pairs.append((d, (a, b) if a.id < b.id else (b, a)))
    pairs.sort(key=lambda p: p[0])   # stable: ties keep tribe order
    return [pair for _, pair in pairs[:policy.max_pairs]]


def is_recent_conflict(memory: InteractionMemory, tick: int, policy: Policy = POLICY) -> bool:
    return (memory.last_tick >= 0
            and tick - memory.last_tick <= policy.cooldown_ticks
            and memory.trust_score < policy.cooldown_trust)
