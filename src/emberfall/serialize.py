# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
serialize.py — Snapshot encode/decode for worlds, agents and simulation state.

Snapshots are plain nested dicts / lists / strings / numbers, ready for
json.dumps.  Schema (version 1):

    {'version': 1, 'seed', 'tick', 'world', 'agents', 'state', 'saved_at'}

Decoding is forgiving about values and strict about shape.  A missing or
non-finite number becomes the field's safe default and absent tribe / event
sections become empty, but an unknown schema version, a tile count that
does not match the grid, or an unknown belief-effect key raises
SnapshotError.
"""

import json
import math
from datetime import datetime, timezone

from .agents import TRAIT_KEYS, Agent
from .beliefs import EFFECT_FIELDS, Belief, BeliefEffect
from .biomes import BIOMES, PLAINS, RESOURCE_KEYS, resource_caps
from .environment import (DRIFT_RATE, ClimateState, EnvironmentState, HazardEvent,
                          SEASONS, SeasonState)
from .interactions import ACTIONS, InteractionMemory, clamp_trust
from .state import SimulationState
from .technology import TechEffects, make_technology
from .tribes import CULTURE_KEYS, Tribe
from .world import World

SNAPSHOT_VERSION = 1


class SnapshotError(ValueError):
    """A snapshot whose structure cannot be repaired by defaulting fields."""


# ── Scalar sanitizers ──────────────────────────────────────────────────────

def _num(v, default: float = 0.0, lo: float | None = None, hi: float | None = None) -> float:
    if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
        return default
    v = float(v)
    if lo is not None:
        v = max(lo, v)
    if hi is not None:
        v = min(hi, v)
    return v


def _int(v, default: int = 0, lo: int | None = None) -> int:
    n = int(_num(v, default))
    return max(lo, n) if lo is not None else n


def _str(v, default: str = '') -> str:
    return v if isinstance(v, str) else default


def _map(v) -> dict:
    return v if isinstance(v, dict) else {}


def _seq(v) -> list:
    return v if isinstance(v, list) else []


# ══════════════════════════════════════════════════════════════════════════
# World
# ══════════════════════════════════════════════════════════════════════════

def encode_world(world: World) -> dict:
    return {
        'width':  world.width,
        'height': world.height,
        'seed':   world.seed,
        'tiles': [
            {
                'x': t['x'], 'y': t['y'],
                'altitude':      t['altitude'],
                'temperature':   t['temperature'],
                'humidity':      t['humidity'],
                'biome':         t['biome'],
                'resources':     dict(t['resources']),
                'resource_caps': dict(t['resource_caps']),
            }
            for t in world.tiles
        ],
    }


def _decode_tile(raw, x: int, y: int) -> dict:
    raw   = _map(raw)
    biome = raw.get('biome') if raw.get('biome') in BIOMES else PLAINS
    base  = resource_caps(biome)
    caps_raw = _map(raw.get('resource_caps'))
    caps  = {k: _num(caps_raw.get(k), base[k], lo=0.0) for k in RESOURCE_KEYS}
    res_raw = _map(raw.get('resources'))
    return {
        'x': x, 'y': y,
        'altitude':      _num(raw.get('altitude'), lo=0.0, hi=1.0),
        'temperature':   _num(raw.get('temperature'), lo=0.0, hi=1.0),
        'humidity':      _num(raw.get('humidity'), lo=0.0, hi=1.0),
        'biome':         biome,
        'resources':     {k: _num(res_raw.get(k), lo=0.0, hi=caps[k]) for k in RESOURCE_KEYS},
        'resource_caps': caps,
    }


def decode_world(raw) -> World:
    raw    = _map(raw)
    width  = _int(raw.get('width'), 0)
    height = _int(raw.get('height'), 0)
    tiles  = _seq(raw.get('tiles'))
    if width < 1 or height < 1:
        raise SnapshotError(f"world has invalid dimensions {width}x{height}")
    if len(tiles) != width * height:
        raise SnapshotError(f"world has {len(tiles)} tiles, expected {width * height}")
    decoded = [_decode_tile(t, i % width, i // width) for i, t in enumerate(tiles)]
    return World(width, height, str(raw.get('seed', '')), decoded)


# ══════════════════════════════════════════════════════════════════════════
# Agents
# ══════════════════════════════════════════════════════════════════════════

def encode_agents(agents) -> list:
    return [
        {
            'id':       a.id,
            'x':        a.x,
            'y':        a.y,
            'energy':   a.energy,
            'health':   a.health,
            'age':      a.age,
            'traits':   dict(a.traits),
            'memory':   list(a.memory),
            'is_alive': a.is_alive,
        }
        for a in agents
    ]


def decode_agents(raw) -> list:
    agents = []
    for i, item in enumerate(_seq(raw)):
        item   = _map(item)
        traits = _map(item.get('traits'))
        agents.append(Agent(
            _str(item.get('id'), f"agent-restored-{i}"),
            _int(item.get('x'), lo=0),
            _int(item.get('y'), lo=0),
            energy   = _num(item.get('energy'), lo=0.0),
            health   = _num(item.get('health'), lo=0.0),
            age      = _int(item.get('age'), lo=0),
            traits   = {k: _num(traits.get(k), 0.5, 0.0, 1.0) for k in TRAIT_KEYS},
            memory   = [m for m in _seq(item.get('memory')) if isinstance(m, str)],
            is_alive = item.get('is_alive', True) is not False,
        ))
    return agents


# ══════════════════════════════════════════════════════════════════════════
# Tribes, beliefs, technologies
# ══════════════════════════════════════════════════════════════════════════

def _encode_effects(fx: TechEffects) -> dict:
    return {
        'efficiency_bonus': fx.efficiency_bonus,
        'storage_bonus':    fx.storage_bonus,
        'movement_bonus':   fx.movement_bonus,
        'defense_bonus':    fx.defense_bonus,
        'trade_bonus':      fx.trade_bonus,
    }


def _decode_effects(raw) -> TechEffects:
    raw = _map(raw)
    return TechEffects(*(_num(raw.get(k), 0.0, 0.0, 0.5) for k in (
        'efficiency_bonus', 'storage_bonus', 'movement_bonus', 'defense_bonus', 'trade_bonus',
    )))


def _encode_belief(b: Belief) -> dict:
    return {
        'id':       b.id,
        'type':     b.type,
        'trigger':  b.trigger,
        'effect':   {k: getattr(b.effect, k) for k in EFFECT_FIELDS},
        'strength': b.strength,
        'age':      b.age,
    }


def _decode_belief(raw) -> Belief:
    raw    = _map(raw)
    effect = _map(raw.get('effect'))
    unknown = [k for k in effect if k not in EFFECT_FIELDS]
    if unknown:
        raise SnapshotError(f"unknown belief effect key(s): {', '.join(sorted(unknown))}")
    defaults = BeliefEffect()
    return Belief(
        id       = _str(raw.get('id')),
        type     = _str(raw.get('type')),
        trigger  = _str(raw.get('trigger')),
        effect   = BeliefEffect(**{k: _num(effect.get(k), getattr(defaults, k))
                                   for k in EFFECT_FIELDS}),
        strength = _num(raw.get('strength'), 0.0, 0.0, 1.0),
        age      = _int(raw.get('age'), lo=0),
    )


def encode_tribe(tribe: Tribe) -> dict:
    return {
        'id':                 tribe.id,
        'members':            list(tribe.members),
        'shared_resources':   dict(tribe.shared_resources),
        'center':             dict(tribe.center),
        'stability':          tribe.stability,
        'culture':            dict(tribe.culture),
        'beliefs':            [_encode_belief(b) for b in tribe.beliefs],
        'technologies': {
            tid: {'id': t.id, 'level': t.level, 'progress': t.progress,
                  'cost': t.cost, 'effects': _encode_effects(t.effects)}
            for tid, t in tribe.technologies.items()
        },
        'tech_progress_rate': tribe.tech_progress_rate,
        'global_tech_level':  tribe.global_tech_level,
        'tech_effects':       _encode_effects(tribe.tech_effects),
    }


def decode_tribe(raw) -> Tribe:
    raw    = _map(raw)
    res    = _map(raw.get('shared_resources'))
    center = _map(raw.get('center'))
    culture = _map(raw.get('culture'))
    techs  = {}
    for tid, t in _map(raw.get('technologies')).items():
        t = _map(t)
        techs[tid] = make_technology(
            tid,
            level    = _int(t.get('level'), lo=0),
            progress = _num(t.get('progress'), lo=0.0),
            cost     = _num(t.get('cost'), 18.0, lo=1.0),
            effects  = _decode_effects(t.get('effects')),
        )
    return Tribe(
        _str(raw.get('id')),
        members            = [m for m in _seq(raw.get('members')) if isinstance(m, str)],
        shared_resources   = {k: _num(res.get(k), lo=0.0) for k in ('food', 'wood', 'materials')},
        center             = {'x': _num(center.get('x')), 'y': _num(center.get('y'))},
        stability          = _num(raw.get('stability'), 1.0, lo=0.0),
        culture            = {k: _num(culture.get(k), 0.5, 0.0, 1.0) for k in CULTURE_KEYS},
        beliefs            = [_decode_belief(b) for b in _seq(raw.get('beliefs'))],
        technologies       = techs,
        tech_progress_rate = _num(raw.get('tech_progress_rate'), lo=0.0),
        global_tech_level  = _int(raw.get('global_tech_level'), lo=0),
        tech_effects       = _decode_effects(raw.get('tech_effects')),
    )


# ══════════════════════════════════════════════════════════════════════════
# Simulation state
# ══════════════════════════════════════════════════════════════════════════

def _encode_memory(m: InteractionMemory) -> dict:
    return {
        'last_actions':       {'a': m.last_action_a, 'b': m.last_action_b},
        'trust_score':        m.trust_score,
        'last_tick':          m.last_tick,
        'total_trades':       m.total_trades,
        'total_cooperations': m.total_cooperations,
        'total_betrays':      m.total_betrays,
        'total_attacks':      m.total_attacks,
        'total_avoids':       m.total_avoids,
    }


def _decode_memory(raw) -> InteractionMemory:
    raw  = _map(raw)
    last = _map(raw.get('last_actions'))
    act  = lambda v: v if v in ACTIONS else 'avoid'   # noqa: E731
    return InteractionMemory(
        last_action_a      = act(last.get('a')),
        last_action_b      = act(last.get('b')),
        trust_score        = clamp_trust(_num(raw.get('trust_score'))),
        last_tick          = _int(raw.get('last_tick'), -1, lo=-1),
        total_trades       = _int(raw.get('total_trades'), lo=0),
        total_cooperations = _int(raw.get('total_cooperations'), lo=0),
        total_betrays      = _int(raw.get('total_betrays'), lo=0),
        total_attacks      = _int(raw.get('total_attacks'), lo=0),
        total_avoids       = _int(raw.get('total_avoids'), lo=0),
    )


def _encode_event(e: HazardEvent) -> dict:
    return {
        'id': e.id, 'type': e.type, 'x': e.x, 'y': e.y, 'radius': e.radius,
        'intensity': e.intensity, 'duration_ticks': e.duration_ticks,
        'remaining_ticks': e.remaining_ticks, 'started_at_tick': e.started_at_tick,
    }


def _decode_event(raw) -> HazardEvent:
    raw = _map(raw)
    return HazardEvent(
        id              = _str(raw.get('id')),
        type            = _str(raw.get('type')),
        x               = _int(raw.get('x'), lo=0),
        y               = _int(raw.get('y'), lo=0),
        radius          = _int(raw.get('radius'), 1, lo=1),
        intensity       = _num(raw.get('intensity'), 0.0, 0.0, 1.0),
        duration_ticks  = _int(raw.get('duration_ticks'), lo=0),
        remaining_ticks = _int(raw.get('remaining_ticks'), lo=0),
        started_at_tick = _int(raw.get('started_at_tick'), lo=0),
    )


def _decode_environment(raw) -> EnvironmentState:
    raw     = _map(raw)
    season  = _map(raw.get('season'))
    climate = _map(raw.get('climate'))
    idx     = _int(season.get('season_index'), lo=0) % len(SEASONS)
    return EnvironmentState(
        SeasonState(idx, SEASONS[idx].name,
                    _int(season.get('year'), lo=0), _int(season.get('day_in_year'), lo=0)),
        ClimateState(
            _num(climate.get('global_temp_shift'), 0.0, -0.35, 0.35),
            _num(climate.get('global_humidity_shift'), 0.0, -0.35, 0.35),
            _num(climate.get('drift_rate'), DRIFT_RATE, lo=0.0),
        ),
    )


def encode_state(state: SimulationState) -> dict:
    env = state.environment
    return {
        'tribes':             [encode_tribe(t) for t in state.tribes],
        'proximity_counters': dict(state.proximity_counters),
        'interaction_memory': {k: _encode_memory(m) for k, m in state.interaction_memory.items()},
        'environment': {
            'season': {
                'season_index': env.season.season_index,
                'season_name':  env.season.season_name,
                'year':         env.season.year,
                'day_in_year':  env.season.day_in_year,
            },
            'climate': {
                'global_temp_shift':     env.climate.global_temp_shift,
                'global_humidity_shift': env.climate.global_humidity_shift,
                'drift_rate':            env.climate.drift_rate,
            },
        },
        'active_events':      [_encode_event(e) for e in state.active_events],
        'next_agent_id':      state.next_agent_id,
        'next_tribe_id':      state.next_tribe_id,
    }


def decode_state(raw) -> SimulationState:
    raw = _map(raw)
    # an agent belongs to at most one tribe; the first tribe listing it keeps it
    tribes, claimed = [], set()
    for t in _seq(raw.get('tribes')):
        tribe = decode_tribe(t)
        tribe.members = [m for m in tribe.members if m not in claimed]
        claimed.update(tribe.members)
        tribes.append(tribe)
    return SimulationState(
        tribes             = tribes,
        proximity_counters = {k: _int(v, lo=0) for k, v in _map(raw.get('proximity_counters')).items()},
        interaction_memory = {k: _decode_memory(v) for k, v in _map(raw.get('interaction_memory')).items()},
        environment        = _decode_environment(raw.get('environment')),
        active_events      = [e for e in map(_decode_event, _seq(raw.get('active_events')))
                              if e.remaining_ticks > 0],
        next_agent_id      = _int(raw.get('next_agent_id'), 1, lo=1),
        next_tribe_id      = _int(raw.get('next_tribe_id'), 1, lo=1),
    )


# ══════════════════════════════════════════════════════════════════════════
# Snapshot
# ══════════════════════════════════════════════════════════════════════════

def encode_snapshot(world: World, agents, state: SimulationState, tick: int, seed,
                    saved_at: str | None = None) -> dict:
    return {
        'version':  SNAPSHOT_VERSION,
        'seed':     str(seed),
        'tick':     tick,
        'world':    encode_world(world),
        'agents':   encode_agents(agents),
        'state':    encode_state(state),
        'saved_at': saved_at or datetime.now(timezone.utc).isoformat(timespec='seconds'),
    }


def decode_snapshot(raw) -> dict:
    if not isinstance(raw, dict):
        raise SnapshotError(f"snapshot must be a mapping, got {type(raw).__name__}")
    version = raw.get('version')
    if version != SNAPSHOT_VERSION:
        raise SnapshotError(f"unsupported snapshot version {version!r}")
    world  = decode_world(raw.get('world'))
    agents = decode_agents(raw.get('agents'))
    for a in agents:
        a.x = min(a.x, world.width - 1)
        a.y = min(a.y, world.height - 1)
    return {
        'version':  SNAPSHOT_VERSION,
        'seed':     str(raw.get('seed', world.seed)),
        'tick':     _int(raw.get('tick'), lo=0),
        'world':    world,
        'agents':   agents,
        'state':    decode_state(raw.get('state')),
        'saved_at': _str(raw.get('saved_at')),
    }


def dumps(snapshot: dict) -> str:
    return json.dumps(snapshot, separators=(',', ':'), allow_nan=False)


def loads(text: str):
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"snapshot is not valid JSON: {exc}") from exc
