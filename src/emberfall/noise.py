# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
noise.py — Layer 0: seeded value noise and fractal Brownian motion.

Lattice corners are drawn from rng.value, so the fields are as reproducible
as the rest of the simulation.  Used by world.py for altitude, temperature
and humidity.
"""

import math
from functools import lru_cache

from .rng import value


@lru_cache(maxsize=1 << 16)
def _lattice(seed: str, ix: int, iy: int) -> float:
    return value(seed, ix, iy)


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def _smoothstep(t: float) -> float:
    return t * t * (3 - 2 * t)


def value_noise_2d(seed, x: float, y: float, scale: float = 16) -> float:
    """Bilinear lattice noise in [0, 1) with a smoothstep interpolant."""
    gx, gy = x / scale, y / scale
    x0, y0 = math.floor(gx), math.floor(gy)
    sx = _smoothstep(gx - x0)
    sy = _smoothstep(gy - y0)
    seed = str(seed)

    n00 = _lattice(seed, x0,     y0)
    n10 = _lattice(seed, x0 + 1, y0)
    n01 = _lattice(seed, x0,     y0 + 1)
    n11 = _lattice(seed, x0 + 1, y0 + 1)

    return _lerp(_lerp(n00, n10, sx), _lerp(n01, n11, sx), sy)


def fbm_2d(seed, x: float, y: float, octaves: int = 4, persistence: float = 0.5,
           lacunarity: float = 2.0, base_scale: float = 24) -> float:
    """Sum `octaves` layers of value noise, normalised by total amplitude."""
    amplitude = 1.0
    frequency = 1.0
    total     = 0.0
    norm      = 0.0
    for i in range(octaves):
        n = value_noise_2d(f"{seed}:o{i}", x * frequency, y * frequency, base_scale)
        total     += n * amplitude
        norm      += amplitude
        amplitude *= persistence
        frequency *= lacunarity
    return total / norm if norm else 0.0
