# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
world.py — Layer 0: procedural terrain, biomes and resource regeneration.

A World is a row-major grid of tile dicts:

    {'x', 'y', 'altitude', 'temperature', 'humidity', 'biome',
     'resources': {food, wood, water, materials},
     'resource_caps': {food, wood, water, materials}}

regenerate_world() never touches the tiles it is given; it returns a new
World whose tiles the caller owns for the rest of the tick.
"""

from dataclasses import dataclass, field

from .biomes import LETTER, RESOURCE_KEYS, biome_from_climate, regen_rates, resource_caps
from .environment import EnvironmentState, hazard_profile, season_modifiers
from .noise import fbm_2d
from .rng import value


@dataclass
class World:
    width:  int
    height: int
    seed:   str
    tiles:  list = field(default_factory=list)

    def index(self, x: int, y: int) -> int:
        return y * self.width + x

    def tile(self, x: int, y: int) -> dict:
        return self.tiles[y * self.width + x]

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height


def _clamp01(v: float) -> float:
    return max(0.0, min(1.0, v))


# ══════════════════════════════════════════════════════════════════════════
# Generation
# ══════════════════════════════════════════════════════════════════════════

def _initial_resources(seed, x: int, y: int, caps: dict) -> dict:
    # 60–100 % of cap so early turns are not a feast
    return {
        k: float(round(caps[k] * (0.6 + 0.4 * value(seed, 'resourceFill', k, x, y))))
        for k in RESOURCE_KEYS
    }


def _build_tile(seed, x: int, y: int, width: int, height: int) -> dict:
    latitude = 1 - abs((y / max(1, height - 1)) * 2 - 1)

    alt_base   = fbm_2d(f"{seed}:altitude", x, y, octaves=5, base_scale=40)
    alt_detail = fbm_2d(f"{seed}:altitudeDetail", x, y, octaves=2, base_scale=10)
    altitude   = _clamp01(alt_base * 0.8 + alt_detail * 0.2)

    temp_noise  = fbm_2d(f"{seed}:temp", x, y, octaves=4, base_scale=32)
    temperature = _clamp01(latitude * 0.7 + temp_noise * 0.3 - altitude * 0.25)

    hum_noise = fbm_2d(f"{seed}:humidity", x, y, octaves=4, base_scale=28)
    humidity  = _clamp01(hum_noise * 0.85 + (0.15 if altitude < 0.35 else 0.0))

    biome = biome_from_climate(altitude, temperature, humidity)
    caps  = resource_caps(biome)
    return {
        'x': x, 'y': y,
        'altitude':      altitude,
        'temperature':   temperature,
        'humidity':      humidity,
        'biome':         biome,
        'resources':     _initial_resources(seed, x, y, caps),
        'resource_caps': caps,
    }


def generate_world(width: int = 160, height: int = 160, seed='default-seed') -> World:
    if width < 1 or height < 1:
        raise ValueError(f"world dimensions must be positive, got {width}x{height}")
    seed  = str(seed)
    tiles = [_build_tile(seed, x, y, width, height)
             for y in range(height) for x in range(width)]
    return World(width, height, seed, tiles)


# ══════════════════════════════════════════════════════════════════════════
# Regeneration
# ══════════════════════════════════════════════════════════════════════════

def _multipliers(season, hz: dict) -> dict:
    drought, flood, fire = hz['drought'], hz['flood'], hz['wildfire']
    cold, bloom          = hz['coldSnap'], hz['resourceBloom']
    return {
        'food': max(0.1, season.regen_food_mul * (1 - drought * 0.35) * (1 - fire * 0.45)
                    * (1 - cold * 0.3) * (1 + bloom * 0.4)),
        'wood': max(0.1, season.regen_wood_mul * (1 - fire * 0.5) * (1 - drought * 0.2)
                    * (1 + bloom * 0.25)),
        'water': max(0.1, season.regen_water_mul * (1 - drought * 0.5) * (1 + flood * 0.55)),
        'materials': max(0.1, (1 + flood * 0.15) * (1 - fire * 0.1)),
    }


def effective_caps(biome: str, temp_shift: float, hum_shift: float) -> dict:
    """Biome base caps bent by the global climate.  Never compounds across ticks."""
    base = resource_caps(biome)
    return {
        'food':      max(0.0, base['food']  * (1 + hum_shift * 0.08 - temp_shift * 0.06)),
        'wood':      max(0.0, base['wood']  * (1 + hum_shift * 0.04 - temp_shift * 0.04)),
        'water':     max(0.0, base['water'] * (1 + hum_shift * 0.12 - temp_shift * 0.08)),
        'materials': max(0.0, base['materials']),
    }


def regenerate_world(world: World, ticks: int = 1, environment: EnvironmentState | None = None,
                     events=()) -> World:
    env       = environment or EnvironmentState()
    season    = season_modifiers(env.season)
    t_shift   = env.climate.global_temp_shift
    h_shift   = env.climate.global_humidity_shift
    ambient_t = season.temp_shift * 0.01 + t_shift * 0.01
    ambient_h = season.humidity_shift * 0.01 + h_shift * 0.01

    cap_cache: dict[str, dict] = {}
    calm = _multipliers(season, hazard_profile((), 0, 0))

    tiles = []
    for tile in world.tiles:
        biome = tile['biome']
        caps  = cap_cache.get(biome)
        if caps is None:
            caps = cap_cache[biome] = effective_caps(biome, t_shift, h_shift)
        mul   = _multipliers(season, hazard_profile(events, tile['x'], tile['y'])) if events else calm
        rates = regen_rates(biome)
        old   = tile['resources']
        tiles.append({
            'x': tile['x'], 'y': tile['y'],
            'altitude':      tile['altitude'],
            'temperature':   _clamp01(tile['temperature'] + ambient_t),
            'humidity':      _clamp01(tile['humidity'] + ambient_h),
            'biome':         biome,
            'resources': {
                k: max(0.0, min(caps[k], old[k] + rates[k] * mul[k] * ticks))
                for k in RESOURCE_KEYS
            },
            'resource_caps': dict(caps),
        })
    return World(world.width, world.height, world.seed, tiles)


# ══════════════════════════════════════════════════════════════════════════
# Inspection helpers
# ══════════════════════════════════════════════════════════════════════════

def world_signature(world: World) -> str:
    """32-bit FNV-1a over each tile's biome and rounded climate, as hex."""
    h = 0x811C9DC5
    for tile in world.tiles:
        chunk = (f"{tile['biome']}|{tile['altitude']:.3f}|"
                 f"{tile['temperature']:.3f}|{tile['humidity']:.3f};")
        for byte in chunk.encode('utf-8'):
            h ^= byte
            h = (h * 0x01000193) & 0xFFFFFFFF
    return f"{h:08x}"


def resource_totals(world: World) -> dict[str, float]:
    totals = {k: 0.0 for k in RESOURCE_KEYS}
    for tile in world.tiles:
        for k in RESOURCE_KEYS:
            totals[k] += tile['resources'][k]
    return {k: round(v, 2) for k, v in totals.items()}


def biome_counts(world: World) -> dict[str, int]:
    counts: dict[str, int] = {}
    for tile in world.tiles:
        counts[tile['biome']] = counts.get(tile['biome'], 0) + 1
    return counts


def render_ascii(world: World, agents=()) -> str:
    """One character per tile; '@' marks a tile with at least one live agent."""
    occupied = {(a.x, a.y) for a in agents if a.is_alive}
    rows = []
    for y in range(world.height):
        rows.append(''.join(
            '@' if (x, y) in occupied else LETTER.get(world.tile(x, y)['biome'], '?')
            for x in range(world.width)
        ))
    return '\n'.join(rows)
