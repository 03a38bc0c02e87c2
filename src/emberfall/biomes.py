# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
biomes.py — Layer 0: biome classification and per-biome resource profiles.
"""

OCEAN    = 'ocean'
PLAINS   = 'plains'
FOREST   = 'forest'
DESERT   = 'desert'
MOUNTAIN = 'mountain'
TAIGA    = 'taiga'

BIOMES = [OCEAN, PLAINS, FOREST, DESERT, MOUNTAIN, TAIGA]
RESOURCE_KEYS = ('food', 'wood', 'water', 'materials')

LETTER = {OCEAN: '~', PLAINS: '.', FOREST: '^', DESERT: 'D', MOUNTAIN: 'M', TAIGA: 'T'}

# ── Resource caps (units per tile) ─────────────────────────────────────────
BASE_CAPS: dict[str, dict[str, float]] = {
    OCEAN:    {'food':  60, 'wood':   0, 'water': 100, 'materials':  10},
    PLAINS:   {'food': 100, 'wood':  40, 'water':  60, 'materials':  50},
    FOREST:   {'food':  80, 'wood': 100, 'water':  70, 'materials':  40},
    DESERT:   {'food':  25, 'wood':  10, 'water':  20, 'materials':  70},
    MOUNTAIN: {'food':  20, 'wood':  15, 'water':  45, 'materials': 100},
    TAIGA:    {'food':  50, 'wood':  75, 'water':  65, 'materials':  60},
}

# ── Regeneration rates (units per tick, before seasonal/hazard multipliers) ─
REGEN_RATES: dict[str, dict[str, float]] = {
    OCEAN:    {'food': 0.8, 'wood': 0.0,  'water': 1.2, 'materials': 0.2},
    PLAINS:   {'food': 1.0, 'wood': 0.3,  'water': 0.5, 'materials': 0.3},
    FOREST:   {'food': 0.6, 'wood': 1.2,  'water': 0.5, 'materials': 0.2},
    DESERT:   {'food': 0.1, 'wood': 0.05, 'water': 0.1, 'materials': 0.5},
    MOUNTAIN: {'food': 0.1, 'wood': 0.1,  'water': 0.2, 'materials': 1.0},
    TAIGA:    {'food': 0.4, 'wood': 0.9,  'water': 0.4, 'materials': 0.5},
}


def biome_from_climate(altitude: float, temperature: float, humidity: float) -> str:
    if altitude < 0.28:
        return OCEAN
    if altitude > 0.82:
        return MOUNTAIN
    if temperature > 0.72 and humidity < 0.35:
        return DESERT
    if temperature < 0.28 and humidity >= 0.45:
        return TAIGA
    if humidity > 0.68:
        return FOREST
    return PLAINS


def resource_caps(biome: str) -> dict[str, float]:
    """Fresh copy of the biome's base caps (plains for unknown names)."""
    return dict(BASE_CAPS.get(biome, BASE_CAPS[PLAINS]))


def regen_rates(biome: str) -> dict[str, float]:
    return REGEN_RATES.get(biome, REGEN_RATES[PLAINS])
