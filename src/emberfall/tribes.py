# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
tribes.py — Layer 3: tribe formation, membership, mutual aid and culture.

Call order each tick (stages 7–9 of sim.step):
    form_tribes            — bonded pairs of loners found a tribe
    assign_newborns        — children join a parent's tribe
    recruit_loners         — loners close to members are pulled in
    prune_tribes           — drop dead / stray members, dissolve tiny tribes
    support_members        — feed the starving, cap stores, evolve culture
    add_environment_events — nearby hazards become tribe events

Every function works on the tick's own Tribe copies and reports narrative
lines through the shared `event_log` list.
"""

from .rng import value
from .technology import TechEffects, apply_storage_cap

CULTURE_KEYS = ('tech', 'war', 'education', 'trade', 'ecology', 'spirituality')

FORMATION_TICKS  = 6      # consecutive near ticks before a pair may found a tribe
MAX_SPREAD       = 12     # Chebyshev distance from center before a member strays
MAX_SIZE         = 64
RECRUIT_MIN      = 2.0    # minimum winning recruitment score
STARVING_ENERGY  = 30
GRANT_MAX        = 4
GRANT_ENERGY     = 1.6    # energy per unit of shared food
BASE_STORAGE     = 220
FOUNDING_FOOD    = 8.0
CLOSE_TRIBES     = 10     # center distance counted as "external pressure"


def _clamp01(v: float) -> float:
    return max(0.0, min(1.0, v))


def chebyshev(ax: float, ay: float, bx: float, by: float) -> float:
    return max(abs(ax - bx), abs(ay - by))


class Tribe:
    def __init__(self, id, members=(), shared_resources=None, center=None, stability=1.0,
                 culture=None, beliefs=(), technologies=None, tech_progress_rate=0.0,
                 global_tech_level=0, tech_effects=None):
        self.id                 = id
        self.members            = list(dict.fromkeys(members))   # unique, order kept
        res                     = shared_resources or {}
        self.shared_resources   = {k: max(0.0, float(res.get(k, 0.0)))
                                   for k in ('food', 'wood', 'materials')}
        c                       = center or {}
        self.center             = {'x': float(c.get('x', 0.0)), 'y': float(c.get('y', 0.0))}
        self.stability          = max(0.0, stability)
        culture                 = culture or {}
        self.culture            = {k: _clamp01(culture.get(k, 0.5)) for k in CULTURE_KEYS}
        self.beliefs            = list(beliefs)
        self.technologies       = dict(technologies or {})
        self.tech_progress_rate = max(0.0, tech_progress_rate)
        self.global_tech_level  = max(0, int(global_tech_level))
        self.tech_effects       = (tech_effects or TechEffects()).clamped()

    def __repr__(self) -> str:
        return (f"Tribe({self.id} n={len(self.members)} stab={self.stability:.2f} "
                f"food={self.shared_resources['food']:.1f})")

    def copy(self) -> 'Tribe':
        # beliefs and technologies hold frozen records, so shallow containers suffice
        return Tribe(self.id, self.members, self.shared_resources, self.center,
                     self.stability, self.culture, self.beliefs, self.technologies,
                     self.tech_progress_rate, self.global_tech_level, self.tech_effects)

    def dominant_culture_axis(self) -> str:
        best = CULTURE_KEYS[0]
        for k in CULTURE_KEYS:
            if self.culture[k] > self.culture[best]:
                best = k
        return best

    def refresh_center(self, alive: dict) -> None:
        pos = [alive[m] for m in self.members if m in alive]
        if not pos:
            return
        self.center = {
            'x': sum(a.x for a in pos) / len(pos),
            'y': sum(a.y for a in pos) / len(pos),
        }

    def spread_of(self, agent) -> float:
        return chebyshev(agent.x, agent.y, self.center['x'], self.center['y'])


def culture_from_founders(founders) -> dict[str, float]:
    if not founders:
        return {k: 0.5 for k in CULTURE_KEYS}
    n   = len(founders)
    avg = lambda f: sum(f(a.traits) for a in founders) / n   # noqa: E731
    return {
        'tech':         _clamp01(avg(lambda t: t['intelligence'])),
        'war':          _clamp01(avg(lambda t: t['agressivite'])),
        'education':    _clamp01(avg(lambda t: 1 - t['curiosite'] * 0.5 + t['patience'] * 0.5)),
        'trade':        _clamp01(avg(lambda t: 0.5 + (t['curiosite'] - t['agressivite']) * 0.4)),
        'ecology':      _clamp01(avg(lambda t: t['conscience_ecologique'])),
        'spirituality': _clamp01(avg(lambda t: 0.4 + t['prudence'] * 0.6)),
    }


def add_event(event_map: dict, tribe_id: str, etype: str, intensity: float) -> None:
    event_map.setdefault(tribe_id, []).append((etype, intensity))


# ══════════════════════════════════════════════════════════════════════════
# Membership
# ══════════════════════════════════════════════════════════════════════════

def form_tribes(counters: dict, exchanges: set, alive: dict, tribes: list,
                member_to_tribe: dict, new_id, t: int, event_log: list) -> list:
    """Found a tribe for every loner pair bonded long enough that shared this tick."""
    founded = []
    for key, count in counters.items():
        if count < FORMATION_TICKS or key not in exchanges:
            continue
        id_a, id_b = key.split('|')
        if id_a in member_to_tribe or id_b in member_to_tribe:
            continue
        founders = [alive[i] for i in (id_a, id_b) if i in alive]
        tribe = Tribe(
            new_id(),
            members          = [id_a, id_b],
            shared_resources = {'food': FOUNDING_FOOD},
            stability        = 1.0,
            culture          = culture_from_founders(founders),
        )
        tribe.refresh_center(alive)
        for m in tribe.members:
            member_to_tribe[m] = tribe.id
        tribes.append(tribe)
        founded.append(tribe)
        event_log.append(
            f"Tick {t:04d}: TRIBE FORMED {tribe.id} by {id_a} and {id_b} "
            f"(leaning {tribe.dominant_culture_axis()})"
        )
    return founded


def assign_newborns(tribes: list, member_to_tribe: dict, assignments: list) -> int:
    """assignments: [(child_id, tribe_id)] in birth order."""
    by_id  = {tr.id: tr for tr in tribes}
    joined = 0
    for child_id, tribe_id in assignments:
        if child_id in member_to_tribe:
            continue
        tribe = by_id.get(tribe_id)
        if tribe is None or len(tribe.members) >= MAX_SIZE:
            continue
        tribe.members.append(child_id)
        member_to_tribe[child_id] = tribe.id
        joined += 1
    return joined


def recruit_loners(alive: dict, tribes: list, member_to_tribe: dict, counters: dict,
                   exchanges: set) -> int:
    by_id   = {tr.id: tr for tr in tribes}
    support: dict[str, dict[str, float]] = {}
    for key, count in counters.items():
        if count < 2:
            continue
        id_a, id_b = key.split('|')
        tribe_a, tribe_b = member_to_tribe.get(id_a), member_to_tribe.get(id_b)
        score = count + (2 if key in exchanges else 0)
        if tribe_a and not tribe_b:
            per = support.setdefault(id_b, {})
            per[tribe_a] = per.get(tribe_a, 0) + score
        if tribe_b and not tribe_a:
            per = support.setdefault(id_a, {})
            per[tribe_b] = per.get(tribe_b, 0) + score

    recruited = 0
    for agent_id, scores in support.items():
        if agent_id in member_to_tribe or agent_id not in alive:
            continue
        agent = alive[agent_id]
        best, best_score = None, float('-inf')
        for tribe_id, s in scores.items():
            tribe = by_id.get(tribe_id)
            if tribe is None or len(tribe.members) >= MAX_SIZE:
                continue
            spread = tribe.spread_of(agent)
            if spread > MAX_SPREAD:
                continue
            score = s - spread * 0.75 + tribe.stability * 0.3
            if score > best_score:
                best, best_score = tribe, score
        if best is None or best_score < RECRUIT_MIN:
            continue
        best.members.append(agent_id)
        member_to_tribe[agent_id] = best.id
        agent.remember(f"joined:{best.id}")
        recruited += 1
    return recruited


def prune_tribes(alive: dict, tribes: list, member_to_tribe: dict, t: int,
                 event_log: list) -> tuple[list, int]:
    """Drop dead and stray members; dissolve tribes left with fewer than 2."""
    kept      = []
    dissolved = 0
    for tribe in tribes:
        for m in tribe.members:
            if m not in alive and member_to_tribe.get(m) == tribe.id:
                del member_to_tribe[m]
        tribe.members = [m for m in tribe.members if m in alive]
        tribe.refresh_center(alive)
        strays = [m for m in tribe.members if tribe.spread_of(alive[m]) > MAX_SPREAD]
        for m in strays:
            if member_to_tribe.get(m) == tribe.id:
                del member_to_tribe[m]
        tribe.members = [m for m in tribe.members if m not in strays]
        if len(tribe.members) < 2:
            dissolved += 1
            for m in tribe.members:
                if member_to_tribe.get(m) == tribe.id:
                    del member_to_tribe[m]
            event_log.append(f"Tick {t:04d}: TRIBE DISSOLVED {tribe.id}")
            continue
        tribe.refresh_center(alive)
        kept.append(tribe)
    for tribe in kept:
        for m in tribe.members:
            member_to_tribe[m] = tribe.id
    return kept, dissolved


# ══════════════════════════════════════════════════════════════════════════
# Mutual aid and culture
# ══════════════════════════════════════════════════════════════════════════

def tribe_context(tribe: Tribe, alive: dict, world, tribes: list, deaths: int) -> dict:
    members = [alive[m] for m in tribe.members if m in alive]
    n       = len(members)
    avg_e   = sum(a.energy for a in members) / n if n else 0.0
    surplus = tribe.shared_resources['food'] + max(0.0, avg_e - 70) * n * 0.05

    depleted = 0
    for a in members:
        tile = world.tile(a.x, a.y)
        cap  = tile['resource_caps']['food']
        if (tile['resources']['food'] / cap if cap > 0 else 1.0) < 0.25:
            depleted += 1

    close = sum(
        1 for other in tribes
        if other.id != tribe.id
        and chebyshev(tribe.center['x'], tribe.center['y'],
                      other.center['x'], other.center['y']) <= CLOSE_TRIBES
    )
    return {
        'surplus':        surplus,
        'overuse_ratio':  depleted / n if n else 0.0,
        'close_external': close,
        'deaths':         deaths,
    }


def evolve_culture(tribe: Tribe, ctx: dict, tick: int, seed) -> None:
    def nudge(axis: str, delta: float) -> None:
        drift = (value(seed, 'culture', tribe.id, tick, axis) - 0.5) * 0.004
        tribe.culture[axis] = _clamp01(tribe.culture[axis] + delta + drift)

    if ctx['surplus'] > 14:
        nudge('tech' if value(seed, 'culture-surplus', tribe.id, tick) > 0.5 else 'education', 0.01)
    if ctx['deaths'] > 0:
        nudge('war' if value(seed, 'culture-loss', tribe.id, tick) > 0.5 else 'spirituality', 0.012)
    if ctx['overuse_ratio'] > 0.35:
        nudge('ecology', 0.012)
    if ctx['close_external'] > 0:
        nudge('trade', min(0.012, 0.006 * ctx['close_external']))
    for k in CULTURE_KEYS:
        tribe.culture[k] = _clamp01(tribe.culture[k] - 0.001)


def support_members(tribes: list, alive: dict, world, deaths_by_tribe: dict, tick: int, seed,
                    event_map: dict, tech_effects: dict, event_log: list) -> None:
    for tribe in tribes:
        deaths = deaths_by_tribe.get(tribe.id, 0)
        store  = tribe.shared_resources
        helped = 0
        for m in tribe.members:
            agent = alive.get(m)
            if agent is None or not agent.is_alive:
                continue
            if agent.energy < STARVING_ENERGY and store['food'] > 2:
                grant = min(GRANT_MAX, store['food'])
                store['food'] -= grant
                agent.energy   = min(120, agent.energy + grant * GRANT_ENERGY)
                helped += 1

        if helped and not deaths:
            tribe.stability += 0.03 * helped
        if not helped and store['food'] < 1:
            tribe.stability = max(0.0, tribe.stability - 0.05)
            add_event(event_map, tribe.id, 'famine', 0.7)
            event_log.append(f"Tick {tick:04d}: FAMINE grips {tribe.id}")
        if deaths:
            tribe.stability = max(0.0, tribe.stability - 0.08 * deaths)
            add_event(event_map, tribe.id, 'mortality', min(1.0, deaths * 0.12))

        cap = apply_storage_cap(BASE_STORAGE, tech_effects.get(tribe.id, TechEffects()).storage_bonus)
        for k in store:
            store[k] = max(0.0, min(cap, store[k]))

        ctx = tribe_context(tribe, alive, world, tribes, deaths)
        if ctx['overuse_ratio'] > 0.5:
            add_event(event_map, tribe.id, 'catastrophe', 0.6)
        evolve_culture(tribe, ctx, tick, seed)


HAZARD_TRIGGERS = ('drought', 'coldSnap', 'wildfire')


def add_environment_events(tribes: list, events, event_map: dict) -> None:
    for tribe in tribes:
        cx, cy = tribe.center['x'], tribe.center['y']
        for ev in events:
            if ev.type not in HAZARD_TRIGGERS:
                continue
            if ((cx - ev.x) ** 2 + (cy - ev.y) ** 2) ** 0.5 > ev.radius + 2:
                continue
            add_event(event_map, tribe.id, 'catastrophe', ev.intensity)
            tribe.culture['ecology']      = _clamp01(tribe.culture['ecology'] + 0.003 * ev.intensity)
            tribe.culture['spirituality'] = _clamp01(tribe.culture['spirituality'] + 0.003 * ev.intensity)
