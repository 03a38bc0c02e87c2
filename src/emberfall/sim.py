# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
sim.py — Tick orchestrator and command-line runner for Emberfall.

Run with:  python -m emberfall --seed my-seed --ticks 1000

Layer architecture
──────────────────
  Layer 0 · world / environment — terrain, biomes, regeneration, seasons, hazards
  Layer 1 · agents              — movement, harvest, aging, reproduction
  Layer 2 · beliefs             — event-driven belief formation and diffusion
  Layer 3 · tribes              — bonding, membership, mutual aid, culture
  Layer 4 · interactions        — trade, cooperation, betrayal, raids, trust
  Layer 5 · technology          — emergent technologies and their bonuses

step() runs the layers in one fixed order.  Later stages read what earlier
ones wrote, so the order is part of the simulation's definition.
"""

import argparse
import math
import pathlib
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime

from . import config
from .agents import ENERGY_CAP, Agent, reproduce, spawn
from .beliefs import (BeliefModifiers, apply_belief_effects_on_culture,
                      collect_belief_modifiers, create_belief_from_event,
                      diffuse_belief, lifecycle_feedback, maybe_add_belief,
                      summarize_beliefs, update_beliefs_lifecycle)
from .environment import EnvironmentState, advance_environment, event_intensity_at
from .interactions import (ACTIONS, InteractionMemory, apply_casualties,
                           candidate_pairs, decide_tribe_action, is_recent_conflict,
                           pair_key, resolve_interaction, update_interaction_memory)
from .metrics import MetricsLogger
from .rng import value
from .serialize import decode_snapshot, dumps, encode_snapshot, loads
from .state import IdAllocator, SimulationState
from .technology import (TechEffects, collect_technology_effects,
                         summarize_technology, tech_surplus, update_tribe_technology)
from .tribes import (CULTURE_KEYS, MAX_SPREAD, add_environment_events, assign_newborns,
                     chebyshev, form_tribes, prune_tribes, recruit_loners, support_members)
from .world import (World, biome_counts, generate_world, regenerate_world, render_ascii,
                    resource_totals)

# ── Agent behaviour constants ─────────────────────────────────────────────
NEAR_DISTANCE   = 2       # Chebyshev range that grows a proximity counter
SHARE_DISTANCE  = 1
SHARE_MIN_COUNT = 2
SHARE_AMOUNT    = 3
SHARE_DONOR_MIN = 55
POOR_FOOD       = 18
POOR_WATER      = 14
HARVEST_SHARE   = 0.35    # fraction of a member's harvest that goes to the tribe store
ENERGY_PER_FOOD = 1.8
REPRO_ENERGY    = 95
PARTNER_ENERGY  = 85
REPRO_AGE       = 20
REPRO_COST      = (25, 20)   # initiator, partner


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def _round_half_up(v: float) -> int:
    return math.floor(v + 0.5)


def _sign(v: float) -> int:
    return (v > 0) - (v < 0)


@dataclass
class TickResult:
    world:              World
    agents:             list
    tribes:             list
    interaction_events: list
    state:              SimulationState
    stats:              dict
    event_log:          list = field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════
# Layer 1: agent behaviour
# ══════════════════════════════════════════════════════════════════════════

def movement_steps(movement_bonus: float = 0.0) -> int:
    return 1 + int(_clamp(movement_bonus, 0.0, 0.5) * 2)


def best_local_move(world: World, x: int, y: int, max_step: int, events=()) -> tuple[int, int]:
    """Richest, least dangerous tile within max_step; first best in scan order."""
    best, best_score = (x, y), float('-inf')
    for dy in range(-max_step, max_step + 1):
        for dx in range(-max_step, max_step + 1):
            nx = int(_clamp(x + dx, 0, world.width - 1))
            ny = int(_clamp(y + dy, 0, world.height - 1))
            res = world.tile(nx, ny)['resources']
            score = res['food'] * 1.2 + res['water'] * 1.1 + res['wood'] * 0.2
            if events:
                score -= (event_intensity_at(events, nx, ny, 'wildfire') * 14
                          + event_intensity_at(events, nx, ny, 'flood') * 8
                          + event_intensity_at(events, nx, ny, 'coldSnap') * 6)
            if score > best_score:
                best, best_score = (nx, ny), score
    return best


def move_agent(agent: Agent, world: World, tick: int, seed, movement_bonus: float = 0.0,
               events=(), center: dict | None = None) -> None:
    max_step = movement_steps(movement_bonus)

    if center is not None:
        to_x = _round_half_up(center['x'] - agent.x)
        to_y = _round_half_up(center['y'] - agent.y)
        if max(abs(to_x), abs(to_y)) > MAX_SPREAD * 0.6:
            agent.x = int(_clamp(agent.x + _sign(to_x) * min(max_step, abs(to_x)), 0, world.width - 1))
            agent.y = int(_clamp(agent.y + _sign(to_y) * min(max_step, abs(to_y)), 0, world.height - 1))
            return

    res = world.tile(agent.x, agent.y)['resources']
    if res['food'] < POOR_FOOD or res['water'] < POOR_WATER:
        agent.x, agent.y = best_local_move(world, agent.x, agent.y, max_step, events)
        return

    if agent.traits['prudence'] > 0.7:
        return
    span = max_step * 2 + 1
    dx = int(value(seed, 'move', agent.id, tick, 'dx') * span) - max_step
    dy = int(value(seed, 'move', agent.id, tick, 'dy') * span) - max_step
    agent.x = int(_clamp(agent.x + dx, 0, world.width - 1))
    agent.y = int(_clamp(agent.y + dy, 0, world.height - 1))


def harvest_yield(available_food: float, intelligence: float, tech_culture: float = 0.0,
                  ecology_culture: float = 0.0, belief_multiplier: float = 1.0,
                  efficiency_bonus: float = 0.0) -> float:
    desired = ((1.5 + intelligence * 2)
               * (1 + tech_culture * 0.18)
               * (1 - ecology_culture * 0.15)
               * belief_multiplier
               * (1 + _clamp(efficiency_bonus, 0.0, 0.5)))
    return max(0.0, min(available_food, desired))


def harvest(agent: Agent, tile: dict, tribe, mods: BeliefModifiers, effects: TechEffects) -> float:
    taken = harvest_yield(
        tile['resources']['food'],
        agent.traits['intelligence'],
        tribe.culture['tech'] if tribe else 0.0,
        tribe.culture['ecology'] if tribe else 0.0,
        mods.harvest_multiplier,
        effects.efficiency_bonus,
    )
    tile['resources']['food'] = max(0.0, tile['resources']['food'] - taken)
    if tribe is not None:
        share = taken * HARVEST_SHARE
        tribe.shared_resources['food'] += share
        agent.energy = min(ENERGY_CAP, agent.energy + (taken - share) * ENERGY_PER_FOOD)
    else:
        agent.energy = min(ENERGY_CAP, agent.energy + taken * ENERGY_PER_FOOD)
    if taken > 0:
        agent.remember(f"harvest:{taken:.2f}")
    return taken


def apply_life_costs(agent: Agent) -> bool:
    """Charge one tick of living.  True when the agent dies of it."""
    agent.energy -= 1 + min(0.8, agent.age * 0.001)
    agent.age    += 1
    if agent.energy <= 0:
        agent.die('energy')
        return True
    return False


def _can_partner(candidate: Agent, agent: Agent) -> bool:
    return (candidate.id != agent.id and candidate.is_alive
            and candidate.energy >= PARTNER_ENERGY and candidate.age >= REPRO_AGE
            and abs(candidate.x - agent.x) <= 1 and abs(candidate.y - agent.y) <= 1)


def try_reproduce(agent: Agent, roster: list, world: World, tick: int, seed, tribe,
                  member_to_tribe: dict, new_agent_id) -> tuple[Agent, Agent] | None:
    """Returns (child, partner) on a successful birth."""
    if not agent.is_alive or agent.energy < REPRO_ENERGY or agent.age < REPRO_AGE:
        return None
    chance = (0.02 + agent.traits['patience'] * 0.02
              + (tribe.culture['war'] if tribe else 0.0) * 0.01)
    if value(seed, 'repro', agent.id, tick) > chance:
        return None

    own = member_to_tribe.get(agent.id)
    partner = next((c for c in roster if _can_partner(c, agent)
                    and member_to_tribe.get(c.id) == own), None)
    if partner is None:
        partner = next((c for c in roster if _can_partner(c, agent)), None)
    if partner is None:
        return None

    cx = int(_clamp(agent.x + int(value(seed, 'child-x', tick, agent.id) * 3) - 1, 0, world.width - 1))
    cy = int(_clamp(agent.y + int(value(seed, 'child-y', tick, agent.id) * 3) - 1, 0, world.height - 1))
    child = reproduce(
        new_agent_id(), agent, partner, cx, cy,
        seed      = f"{seed}|child|{agent.id}|{partner.id}|{tick}",
        education = tribe.culture['education'] if tribe else 0.0,
    )
    agent.energy   -= REPRO_COST[0]
    partner.energy -= REPRO_COST[1]
    agent.remember(f"reproduce:{child.id}")
    partner.remember(f"reproduce:{child.id}")
    return child, partner


# ══════════════════════════════════════════════════════════════════════════
# Layer 3 helpers: proximity and sharing
# ══════════════════════════════════════════════════════════════════════════

def near_pairs(agents: list, reach: int = NEAR_DISTANCE) -> list[tuple[int, int]]:
    """Index pairs (i < j) of live agents within Chebyshev `reach`, sorted."""
    cell    = reach + 1
    buckets: dict[tuple[int, int], list[int]] = {}
    for i, a in enumerate(agents):
        if a.is_alive:
            buckets.setdefault((a.x // cell, a.y // cell), []).append(i)

    pairs = []
    for (bx, by), members in buckets.items():
        for nx in (bx - 1, bx, bx + 1):
            for ny in (by - 1, by, by + 1):
                others = buckets.get((nx, ny))
                if not others:
                    continue
                for i in members:
                    a = agents[i]
                    for j in others:
                        if j > i and chebyshev(a.x, a.y, agents[j].x, agents[j].y) <= reach:
                            pairs.append((i, j))
    pairs.sort()
    return pairs


def update_proximity_counters(agents: list, pairs: list, previous: dict) -> dict:
    """Counters for currently-near pairs only; a pair that drifted apart starts over."""
    counters = {}
    for i, j in pairs:
        key = pair_key(agents[i].id, agents[j].id)
        counters[key] = previous.get(key, 0) + 1
    return counters


def share_energy(agents: list, pairs: list, counters: dict, member_to_tribe: dict,
                 tribe_by_id: dict) -> set:
    """Well-fed neighbours hand energy to hungry ones.  Returns the pair keys that shared."""
    exchanges = set()
    for i, j in pairs:
        a, b = agents[i], agents[j]
        key = pair_key(a.id, b.id)
        if counters.get(key, 0) < SHARE_MIN_COUNT or chebyshev(a.x, a.y, b.x, b.y) > SHARE_DISTANCE:
            continue
        tribe_a = tribe_by_id.get(member_to_tribe.get(a.id))
        tribe_b = tribe_by_id.get(member_to_tribe.get(b.id))
        war = max(tribe_a.culture['war'] if tribe_a else 0.0,
                  tribe_b.culture['war'] if tribe_b else 0.0)
        threshold = 14 + war * 8 * 0.3
        donor, receiver = (a, b) if a.energy > b.energy else (b, a)
        if donor.energy - receiver.energy > threshold and donor.energy > SHARE_DONOR_MIN:
            donor.energy    -= SHARE_AMOUNT
            receiver.energy += SHARE_AMOUNT
            exchanges.add(key)
    return exchanges


# ══════════════════════════════════════════════════════════════════════════
# Statistics
# ══════════════════════════════════════════════════════════════════════════

def compute_stats(world: World, agents: list, tribes: list, births: int, deaths: int,
                  dissolved: int, breakdown: dict, interactions: int, memory: dict,
                  env: EnvironmentState, events: list) -> dict:
    n_tribes = len(tribes)
    culture  = {k: (sum(tr.culture[k] for tr in tribes) / n_tribes if n_tribes else 0.0)
                for k in CULTURE_KEYS}
    trust    = [m.trust_score for m in memory.values() if not math.isnan(m.trust_score)]
    stats = {
        'population':            len(agents),
        'births':                births,
        'deaths':                deaths,
        'tribes':                n_tribes,
        'average_tribe_size':    (sum(len(tr.members) for tr in tribes) / n_tribes if n_tribes else 0.0),
        'dissolved_tribes':      dissolved,
        'culture_average':       culture,
        'interactions':          interactions,
        'interaction_breakdown': dict(breakdown),
        'mean_trust':            sum(trust) / len(trust) if trust else 0.0,
    }
    stats.update(summarize_beliefs(tribes))
    stats.update(summarize_technology(tribes))
    stats.update({
        'season':                env.season.season_name,
        'year':                  env.season.year,
        'global_temp_shift':     env.climate.global_temp_shift,
        'global_humidity_shift': env.climate.global_humidity_shift,
        'active_hazards':        len(events),
        'mean_hazard_intensity': (sum(e.intensity for e in events) / len(events) if events else 0.0),
        'resources':             resource_totals(world),
    })
    return stats


# ══════════════════════════════════════════════════════════════════════════
# The tick
# ══════════════════════════════════════════════════════════════════════════

def step(world: World, agents: list, tick: int, seed=None,
         state: SimulationState | None = None) -> TickResult:
    """Advance the whole society by one tick.

    Neither `world`, `agents` nor `state` is modified; the returned
    TickResult holds fresh copies.  Identical inputs give identical output.
    """
    seed  = world.seed if seed is None else seed
    state = state or SimulationState()
    log: list[str] = []

    # ── 1. Environment ────────────────────────────────────────────────────
    env, events = advance_environment(state.environment, state.active_events, tick, seed,
                                      world.width, world.height)
    for ev in events:
        if ev.started_at_tick == tick:
            log.append(f"Tick {tick:04d}: HAZARD {ev.type} strikes near ({ev.x}, {ev.y}) "
                       f"radius {ev.radius} intensity {ev.intensity:.2f}")

    # ── 2. World regeneration ─────────────────────────────────────────────
    world = regenerate_world(world, 1, env, events)

    # ── 3. Snapshot tribes and their modifiers ────────────────────────────
    roster      = [a.copy() for a in agents]
    tribes      = [tr.copy() for tr in state.tribes]
    tribe_by_id = {tr.id: tr for tr in tribes}
    belief_mods = {tr.id: collect_belief_modifiers(tr.beliefs) for tr in tribes}
    tech_fx     = {tr.id: collect_technology_effects(tr.technologies) for tr in tribes}
    member_to_tribe = {m: tr.id for tr in tribes for m in tr.members}
    new_agent_id = IdAllocator('agent', state.next_agent_id, [a.id for a in agents])
    new_tribe_id = IdAllocator('tribe', state.next_tribe_id, [tr.id for tr in tribes])

    # ── 4. Agents: move, harvest, age, reproduce ──────────────────────────
    newborns, assignments, died = [], [], []
    for agent in roster:
        if not agent.is_alive:
            continue
        tribe = tribe_by_id.get(member_to_tribe.get(agent.id))
        fx    = tech_fx[tribe.id] if tribe else TechEffects()
        mods  = belief_mods[tribe.id] if tribe else BeliefModifiers()
        move_agent(agent, world, tick, seed, fx.movement_bonus, events,
                   tribe.center if tribe else None)
        harvest(agent, world.tile(agent.x, agent.y), tribe, mods, fx)
        if apply_life_costs(agent):
            died.append(agent.id)
        birth = try_reproduce(agent, roster, world, tick, seed, tribe, member_to_tribe, new_agent_id)
        if birth:
            child, partner = birth
            newborns.append(child)
            target = member_to_tribe.get(agent.id) or member_to_tribe.get(partner.id)
            if target:
                assignments.append((child.id, target))

    deaths_by_tribe: dict[str, int] = {}
    for agent_id in died:
        tid = member_to_tribe.get(agent_id)
        if tid:
            deaths_by_tribe[tid] = deaths_by_tribe.get(tid, 0) + 1
            log.append(f"Tick {tick:04d}: {agent_id} of {tid} starved")

    # ── 5. Survivors + newborns ───────────────────────────────────────────
    merged = [a for a in roster if a.is_alive] + newborns
    alive  = {a.id: a for a in merged}

    # ── 6. Proximity and sharing ──────────────────────────────────────────
    pairs     = near_pairs(merged)
    counters  = update_proximity_counters(merged, pairs, state.proximity_counters)
    exchanges = share_energy(merged, pairs, counters, member_to_tribe, tribe_by_id)

    # ── 7. Membership ─────────────────────────────────────────────────────
    form_tribes(counters, exchanges, alive, tribes, member_to_tribe, new_tribe_id, tick, log)
    assign_newborns(tribes, member_to_tribe, assignments)
    recruit_loners(alive, tribes, member_to_tribe, counters, exchanges)
    tribes, dissolved = prune_tribes(alive, tribes, member_to_tribe, tick, log)

    # ── 8. Mutual aid, storage, culture ───────────────────────────────────
    tech_fx   = {tr.id: collect_technology_effects(tr.technologies) for tr in tribes}
    event_map: dict[str, list] = {}
    support_members(tribes, alive, world, deaths_by_tribe, tick, seed, event_map, tech_fx, log)

    # ── 9. Hazards reach the tribes ───────────────────────────────────────
    add_environment_events(tribes, events, event_map)

    # ── 10. Tribe interactions ────────────────────────────────────────────
    memory     = dict(state.interaction_memory)
    breakdown  = {a: 0 for a in ACTIONS}
    positive: dict[str, int] = {}
    interaction_events, interacted = [], []
    battle_deaths = 0
    for tribe_a, tribe_b in candidate_pairs(tribes):
        key    = pair_key(tribe_a.id, tribe_b.id)
        mem    = memory.get(key) or InteractionMemory()
        recent = is_recent_conflict(mem, tick)
        mod_a  = belief_mods.get(tribe_a.id, BeliefModifiers())
        mod_b  = belief_mods.get(tribe_b.id, BeliefModifiers())
        fx_a, fx_b = tech_fx[tribe_a.id], tech_fx[tribe_b.id]
        roll_a = value(seed, 'interaction', tick, key, 'a')
        roll_b = value(seed, 'interaction', tick, key, 'b')

        action_a = decide_tribe_action(tribe_a, tribe_b, mem, roll_a,
                                       mod_a.peace_bias, mod_a.conflict_bias)
        action_b = decide_tribe_action(tribe_b, tribe_a, mem.swapped(), roll_b,
                                       mod_b.peace_bias, mod_b.conflict_bias)
        if recent:
            action_a = 'avoid' if action_a == 'attack' else action_a
            action_b = 'avoid' if action_b == 'attack' else action_b

        outcome  = resolve_interaction(tribe_a, tribe_b, action_a, action_b, (roll_a + roll_b) / 2)
        fallen_a = apply_casualties(tribe_a, outcome.dead_a, alive, fx_a.defense_bonus)
        fallen_b = apply_casualties(tribe_b, outcome.dead_b, alive, fx_b.defense_bonus)
        battle_deaths += len(fallen_a) + len(fallen_b)

        delta = (outcome.trust_delta * (1 + max(fx_a.trade_bonus, fx_b.trade_bonus))
                 + (mod_a.trust_gain_bonus + mod_b.trust_gain_bonus) * 0.5)
        memory[key] = update_interaction_memory(mem, action_a, action_b, delta, tick)
        interacted.append((tribe_a, tribe_b, key))

        if action_a == action_b and action_a in ('trade', 'cooperate'):
            positive[tribe_a.id] = positive.get(tribe_a.id, 0) + 1
            positive[tribe_b.id] = positive.get(tribe_b.id, 0) + 1
            if action_a == 'trade':
                event_map.setdefault(tribe_a.id, []).append(('success_trade', 0.6))
                event_map.setdefault(tribe_b.id, []).append(('success_trade', 0.6))
                log.append(f"Tick {tick:04d}: TRADE between {tribe_a.id} and {tribe_b.id}")
        if 'attack' in (action_a, action_b):
            if len(fallen_b) > len(fallen_a):
                event_map.setdefault(tribe_a.id, []).append(('victory_attack', 0.7))
            elif len(fallen_a) > len(fallen_b):
                event_map.setdefault(tribe_b.id, []).append(('victory_attack', 0.7))
            log.append(f"Tick {tick:04d}: RAID {tribe_a.id} ({action_a}) vs {tribe_b.id} "
                       f"({action_b}): {len(fallen_a)}/{len(fallen_b)} fell in battle")
        elif 'betray' in (action_a, action_b):
            log.append(f"Tick {tick:04d}: BETRAYAL between {tribe_a.id} and {tribe_b.id}")

        breakdown[action_a] += 1
        breakdown[action_b] += 1
        interaction_events.append({
            'tick':       tick,
            'tribe_a':    tribe_a.id,
            'tribe_b':    tribe_b.id,
            'from':       dict(tribe_a.center),
            'to':         dict(tribe_b.center),
            'action_a':   action_a,
            'action_b':   action_b,
            'event_type': outcome.event_type,
        })

    # ── 11. Beliefs ───────────────────────────────────────────────────────
    for tribe in tribes:
        for idx, (etype, intensity) in enumerate(event_map.get(tribe.id, ())):
            roll   = value(seed, 'belief-create', tribe.id, tick, idx)
            belief = create_belief_from_event(tribe, etype, intensity, tick, roll)
            if maybe_add_belief(tribe, belief):
                log.append(f"Tick {tick:04d}: BELIEF {tribe.id} embraces {belief.trigger}")
    for tribe_a, tribe_b, key in interacted:
        trust = memory[key].trust_score
        diffuse_belief(tribe_a, tribe_b, trust, value(seed, 'belief-diffuse', tick, key, 'ab'))
        diffuse_belief(tribe_b, tribe_a, trust, value(seed, 'belief-diffuse', tick, key, 'ba'))
    for tribe in tribes:
        update_beliefs_lifecycle(tribe, lifecycle_feedback(tribe.stability))
        apply_belief_effects_on_culture(tribe)

    # ── 12. Technology ────────────────────────────────────────────────────
    for tribe in tribes:
        before = tribe.global_tech_level
        update_tribe_technology(tribe, tech_surplus(tribe), positive.get(tribe.id, 0))
        if tribe.global_tech_level > before:
            log.append(f"Tick {tick:04d}: TECH {tribe.id} advances "
                       f"emergent-{tribe.dominant_culture_axis()} "
                       f"(total level {tribe.global_tech_level})")

    # ── 13. Second prune (battles may have emptied a tribe) ──────────────
    alive = {a.id: a for a in merged if a.is_alive}
    tribes, dissolved_late = prune_tribes(alive, tribes, member_to_tribe, tick, log)
    survivors = [a for a in merged if a.is_alive]

    # ── 14. Statistics ────────────────────────────────────────────────────
    stats = compute_stats(world, survivors, tribes, len(newborns), len(died) + battle_deaths,
                          dissolved + dissolved_late, breakdown, len(interacted), memory,
                          env, events)

    next_state = SimulationState(
        tribes             = tribes,
        proximity_counters = counters,
        interaction_memory = memory,
        environment        = env,
        active_events      = events,
        next_agent_id      = new_agent_id.next,
        next_tribe_id      = new_tribe_id.next,
    )
    return TickResult(world, survivors, tribes, interaction_events, next_state, stats, log)


# ══════════════════════════════════════════════════════════════════════════
# Construction
# ══════════════════════════════════════════════════════════════════════════

def spawn_initial_agents(world: World, count: int = config.AGENT_COUNT, seed=None) -> list:
    seed   = world.seed if seed is None else seed
    agents = []
    for i in range(count):
        sub = f"{seed}|spawn|{i}"
        x   = int(value(sub, 'x') * world.width)
        y   = int(value(sub, 'y') * world.height)
        agents.append(spawn(f"agent-{i + 1}", x, y, sub, prefix=f"agent-{i}"))
    return agents


def new_simulation(seed=config.SEED, width: int = config.WORLD_WIDTH,
                   height: int = config.WORLD_HEIGHT, agent_count: int = config.AGENT_COUNT):
    """(world, agents, state) ready for tick 1."""
    world  = generate_world(width, height, seed)
    agents = spawn_initial_agents(world, agent_count, world.seed)
    return world, agents, SimulationState(next_agent_id=agent_count + 1)


class Simulation:
    """One independent run: owns its world, roster and state."""

    def __init__(self, seed=config.SEED, width: int = config.WORLD_WIDTH,
                 height: int = config.WORLD_HEIGHT, agent_count: int = config.AGENT_COUNT):
        self.seed = str(seed)
        self.world, self.agents, self.state = new_simulation(self.seed, width, height, agent_count)
        self.tick        = 0
        self.last_result: TickResult | None = None
        self.event_log:   list = []

    @classmethod
    def from_parts(cls, world: World, agents: list, state: SimulationState, tick: int,
                   seed) -> 'Simulation':
        sim = cls.__new__(cls)
        sim.seed, sim.world, sim.agents, sim.state = str(seed), world, list(agents), state
        sim.tick        = tick
        sim.last_result = None
        sim.event_log   = []
        return sim

    @property
    def stats(self) -> dict:
        return self.last_result.stats if self.last_result else {}

    @property
    def tribes(self) -> list:
        return self.state.tribes

    def advance(self, ticks: int = 1) -> TickResult:
        if ticks < 1:
            raise ValueError(f"ticks must be positive, got {ticks}")
        for _ in range(ticks):
            self.tick += 1
            result = step(self.world, self.agents, self.tick, self.seed, self.state)
            self.world, self.agents, self.state = result.world, result.agents, result.state
            self.event_log.extend(result.event_log)
            self.last_result = result
        return self.last_result


# ══════════════════════════════════════════════════════════════════════════
# Logging: tees stdout to file; shows only notable lines on terminal
# ══════════════════════════════════════════════════════════════════════════

class _LogTee:
    """Every byte goes to the log file.  Only filtered lines reach the terminal."""

    # Keywords that earn a line a spot on the terminal during the run
    _SHOW = frozenset({
        # Tribe life
        'TRIBE FORMED', 'TRIBE DISSOLVED', 'FAMINE',
        # Diplomacy and war
        'RAID', 'BETRAYAL',
        # Culture
        'TECH', 'BELIEF',
        # World
        'HAZARD',
        # Progress and terminal signals
        'Pop:', 'All agents have perished', '[Simulation interrupted', 'Snapshot saved',
    })

    passthrough: bool = False   # True → show everything (used for final report)

    def __init__(self, log_fh, real_stdout):
        self._log  = log_fh
        self._real = real_stdout
        self._buf  = ''

    def write(self, text: str) -> None:
        self._log.write(text)
        self._log.flush()
        self._buf += text
        while '\n' in self._buf:
            line, self._buf = self._buf.split('\n', 1)
            if self.passthrough or any(kw in line for kw in self._SHOW):
                self._real.write(line + '\n')
                self._real.flush()

    def flush(self) -> None:
        self._log.flush()

    def fileno(self) -> int:
        return self._real.fileno()


def progress_line(tick: int, stats: dict) -> str:
    return (f"[Tick {tick:04d}] Pop: {stats.get('population', 0)} | "
            f"Tribes: {stats.get('tribes', 0)} | "
            f"Trust: {stats.get('mean_trust', 0.0):+.2f} | "
            f"Tech: {stats.get('total_tech_levels', 0)} | "
            f"{stats.get('season', '?')} y{stats.get('year', 0)}")


def print_final_report(sim: Simulation, elapsed: float) -> None:
    stats = sim.stats
    sep   = '═' * 56
    print(f"\n{sep}")
    print(f"EMBERFALL — seed {sim.seed!r}, {sim.tick} ticks in {elapsed:.1f}s")
    print(sep)
    print(f"Population : {stats.get('population', len(sim.agents))}")
    print(f"Tribes     : {stats.get('tribes', len(sim.tribes))} "
          f"(avg size {stats.get('average_tribe_size', 0.0):.1f})")
    print(f"Mean trust : {stats.get('mean_trust', 0.0):+.3f}")
    print(f"Tech total : {stats.get('total_tech_levels', 0)}")
    top = ', '.join(f"{b['trigger']} ({b['strength']})" for b in stats.get('top_beliefs', []))
    print(f"Beliefs    : {stats.get('total_beliefs', 0)}  {top}")
    biomes = ', '.join(f"{b} {n}" for b, n in sorted(biome_counts(sim.world).items()))
    print(f"Biomes     : {biomes}")
    for tribe in sorted(sim.tribes, key=lambda tr: -len(tr.members))[:5]:
        print(f"  {tribe.id:<10} members {len(tribe.members):>3}  "
              f"stability {tribe.stability:5.2f}  leaning {tribe.dominant_culture_axis()}")
    print(sep)


# ══════════════════════════════════════════════════════════════════════════
# Command line
# ══════════════════════════════════════════════════════════════════════════

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog='emberfall',
        description='Deterministic agent-based society simulation.',
    )
    p.add_argument('--seed',   default=config.SEED, help='world and run seed')
    p.add_argument('--ticks',  type=int, default=config.TICKS, help='ticks to simulate')
    p.add_argument('--width',  type=int, default=config.WORLD_WIDTH)
    p.add_argument('--height', type=int, default=config.WORLD_HEIGHT)
    p.add_argument('--agents', type=int, default=config.AGENT_COUNT, help='initial population')
    p.add_argument('--save',   metavar='PATH', help='write a snapshot here when the run ends')
    p.add_argument('--save-every', type=int, default=config.SAVE_EVERY,
                   help='also snapshot every N ticks (needs --save)')
    p.add_argument('--load',   metavar='PATH', help='resume from a snapshot instead of a new world')
    p.add_argument('--metrics', action='store_true', help='write per-tick CSVs to --data-dir')
    p.add_argument('--data-dir', default=config.DATA_DIR)
    p.add_argument('--logs-dir', default=config.LOGS_DIR)
    p.add_argument('--print-every', type=int, default=config.PRINT_EVERY)
    p.add_argument('--map', action='store_true', help='print an ASCII map after the final report')
    p.add_argument('--experiments', type=int, metavar='RUNS', default=0,
                   help='run RUNS independent seeded simulations and print a summary')
    return p


def _save(sim: Simulation, path: str) -> None:
    target = pathlib.Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(dumps(encode_snapshot(sim.world, sim.agents, sim.state, sim.tick, sim.seed)),
                      encoding='utf-8')
    print(f"Snapshot saved → {target} (tick {sim.tick})")


def _load(path: str) -> Simulation | None:
    source = pathlib.Path(path)
    if not source.exists():
        return None
    snap = decode_snapshot(loads(source.read_text(encoding='utf-8')))
    return Simulation.from_parts(snap['world'], snap['agents'], snap['state'],
                                 snap['tick'], snap['seed'])


def run(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.experiments:
        from .experiments import format_summary, run_experiments
        report = run_experiments(args.experiments, args.ticks, args.width, args.seed, args.agents)
        print(format_summary(report))
        return 0

    if args.load:
        sim = _load(args.load)
        if sim is None:
            print(f"No save found at {args.load}", file=sys.stderr)
            return 1
    else:
        sim = Simulation(args.seed, args.width, args.height, args.agents)

    metrics = None
    if args.metrics:
        metrics = MetricsLogger(sim.seed, output_dir=args.data_dir)

    # ── Set up file logging ────────────────────────────────────────────────
    pathlib.Path(args.logs_dir).mkdir(parents=True, exist_ok=True)
    log_path = pathlib.Path(args.logs_dir) / f"run_{datetime.now().strftime('%Y%m%d_%H%M%S')}.txt"
    real     = sys.stdout
    start    = time.time()
    every    = max(1, args.print_every)

    with open(log_path, 'w', encoding='utf-8') as log_fh:
        tee = _LogTee(log_fh, real)
        sys.stdout = tee
        real.write(f"Log → {log_path}\n")
        real.write(f"Running {args.ticks}-tick simulation from tick {sim.tick} "
                   f"(tribes / raids / hazards show below)\n\n")
        try:
            for _ in range(args.ticks):
                result = sim.advance()
                for line in result.event_log:
                    print(line)
                if metrics:
                    metrics.record_tick(sim.tick, result.stats, result.interaction_events)
                if sim.tick % every == 0:
                    print(progress_line(sim.tick, result.stats))
                if args.save and args.save_every and sim.tick % args.save_every == 0:
                    _save(sim, args.save)
                if not result.agents:
                    print(f"Tick {sim.tick:04d}: All agents have perished")
                    break
        except KeyboardInterrupt:
            print(f"[Simulation interrupted at tick {sim.tick}]")
        finally:
            tee.passthrough = True
            print_final_report(sim, time.time() - start)
            if args.map:
                print(render_ascii(sim.world, sim.agents))
            if args.save:
                _save(sim, args.save)
            sys.stdout = real
            if metrics:
                metrics.finalize(sim.tick, sim.stats)
    return 0
