# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
rng.py — Layer 0: content-addressed pseudo-randomness.

Every random draw in the simulation is a pure function of a key tuple
(seed, role label, tick, ids ...).  There is no generator state to seed,
advance, or share between instances, so two runs with the same seed see
the same draws in the same places regardless of call order.

Python's built-in hash() is salted per process and is never used here.
"""

import hashlib

_MANTISSA = float(1 << 53)


def _digest(seed, parts) -> int:
    key = '|'.join(str(p) for p in (seed,) + parts).encode('utf-8')
    return int.from_bytes(hashlib.blake2b(key, digest_size=8).digest(), 'big')


def value(seed, *parts) -> float:
    """Map (seed, *parts) to a float in [0, 1).

    The top 53 bits of a 64-bit BLAKE2b digest become the mantissa, so the
    result is exactly representable and strictly below 1.0.
    """
    return (_digest(seed, parts) >> 11) / _MANTISSA


def value_int(n: int, seed, *parts) -> int:
    """Uniform integer in [0, n)."""
    return int(value(seed, *parts) * n)
