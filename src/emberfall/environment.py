# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
environment.py — Layer 0: seasons, global climate drift and hazard events.

Call order each tick (first stage of sim.step):
    env, events = advance_environment(env, events, tick, seed, width, height)

Public helpers used by other modules:
    season_modifiers(season)                      -> Season
    event_intensity_at(events, x, y, type=None)   -> float in [0, 2]
"""

import math
from dataclasses import dataclass, field, replace

from .rng import value, value_int

YEAR_LENGTH  = 200
EVENT_EVERY  = 25      # spawn check cadence (ticks)
EVENT_CHANCE = 0.08    # probability per spawn check
DRIFT_RATE   = 0.0006
SHIFT_LIMIT  = 0.35

EVENT_TYPES = ['drought', 'flood', 'wildfire', 'coldSnap', 'resourceBloom']


@dataclass(frozen=True)
class Season:
    name:            str
    temp_shift:      float
    humidity_shift:  float
    regen_food_mul:  float
    regen_wood_mul:  float
    regen_water_mul: float


SEASONS = [
    Season('spring',  0.04,  0.06, 1.08, 1.05, 1.04),
    Season('summer',  0.09, -0.04, 1.02, 0.98, 0.95),
    Season('autumn', -0.01,  0.02, 1.00, 1.02, 1.01),
    Season('winter', -0.10, -0.02, 0.86, 0.92, 0.97),
]


@dataclass(frozen=True)
class SeasonState:
    season_index: int = 0
    season_name:  str = 'spring'
    year:         int = 0
    day_in_year:  int = 0


@dataclass(frozen=True)
class ClimateState:
    global_temp_shift:     float = 0.0
    global_humidity_shift: float = 0.0
    drift_rate:            float = DRIFT_RATE


@dataclass(frozen=True)
class EnvironmentState:
    season:  SeasonState  = field(default_factory=SeasonState)
    climate: ClimateState = field(default_factory=ClimateState)


@dataclass(frozen=True)
class HazardEvent:
    id:              str
    type:            str
    x:               int
    y:               int
    radius:          int
    intensity:       float
    duration_ticks:  int
    remaining_ticks: int
    started_at_tick: int


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def season_state(tick: int, year_length: int = YEAR_LENGTH) -> SeasonState:
    day = tick % year_length
    idx = int(day / year_length * 4) % 4
    return SeasonState(idx, SEASONS[idx].name, tick // year_length, day)


def season_modifiers(season: SeasonState) -> Season:
    if 0 <= season.season_index < len(SEASONS):
        return SEASONS[season.season_index]
    return SEASONS[0]


def _spawn_event(seed, tick: int, width: int, height: int, index: int) -> HazardEvent:
    roll = lambda label: value(seed, label, tick, index)   # noqa: E731
    etype     = EVENT_TYPES[value_int(len(EVENT_TYPES), seed, 'env-event-type', tick, index)]
    duration  = 25 + int(roll('env-event-d') * 70)
    return HazardEvent(
        id              = f"{etype}-{tick}-{index}",
        type            = etype,
        x               = int(roll('env-event-x') * width),
        y               = int(roll('env-event-y') * height),
        radius          = 5 + int(roll('env-event-r') * 9),
        intensity       = _clamp(0.25 + roll('env-event-i') * 0.65, 0.2, 1.0),
        duration_ticks  = duration,
        remaining_ticks = duration,
        started_at_tick = tick,
    )


def advance_environment(env: EnvironmentState | None, events, tick: int, seed,
                        width: int, height: int) -> tuple[EnvironmentState, list[HazardEvent]]:
    """Season from the tick, one drift step for the climate, event countdown and spawn."""
    env = env or EnvironmentState()
    climate = env.climate
    d_temp = (value(seed, 'drift-temp', tick) - 0.5) * climate.drift_rate
    d_hum  = (value(seed, 'drift-hum', tick) - 0.5) * climate.drift_rate
    climate = replace(
        climate,
        global_temp_shift     = _clamp(climate.global_temp_shift + d_temp, -SHIFT_LIMIT, SHIFT_LIMIT),
        global_humidity_shift = _clamp(climate.global_humidity_shift + d_hum, -SHIFT_LIMIT, SHIFT_LIMIT),
    )

    next_events = []
    for ev in events or ():
        if ev.remaining_ticks - 1 > 0:
            next_events.append(replace(ev, remaining_ticks=ev.remaining_ticks - 1))

    if tick % EVENT_EVERY == 0 and value(seed, 'env-event-prob', tick) < EVENT_CHANCE:
        next_events.append(_spawn_event(seed, tick, width, height, len(next_events) + 1))

    return EnvironmentState(season_state(tick), climate), next_events


def event_intensity_at(events, x: float, y: float, etype: str | None = None) -> float:
    total = 0.0
    for ev in events or ():
        if etype and ev.type != etype:
            continue
        dist = math.hypot(ev.x - x, ev.y - y)
        if dist <= ev.radius:
            total += ev.intensity * (1 - dist / max(1, ev.radius))
    return _clamp(total, 0.0, 2.0)


def hazard_profile(events, x: float, y: float) -> dict[str, float]:
    """Intensity of every hazard type at (x, y)."""
    if not events:
        return {t: 0.0 for t in EVENT_TYPES}
    return {t: event_intensity_at(events, x, y, t) for t in EVENT_TYPES}
