# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""Emberfall: a deterministic, seed-reproducible agent-based society simulation."""

from .sim import Simulation, TickResult, new_simulation, spawn_initial_agents, step
from .state import SimulationState
from .world import World, generate_world, regenerate_world, world_signature

__all__ = [
    'Simulation', 'SimulationState', 'TickResult', 'World',
    'generate_world', 'new_simulation', 'regenerate_world',
    'spawn_initial_agents', 'step', 'world_signature',
]
