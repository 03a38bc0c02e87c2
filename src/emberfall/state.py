# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
state.py — The cross-tick context carried between calls to sim.step().

Besides the world and the agent roster this is the only state that lives
from one tick to the next.  It also owns the id allocator, so two
simulations running side by side never hand out colliding ids.
"""

from dataclasses import dataclass, field

from .environment import EnvironmentState


@dataclass
class SimulationState:
    tribes:             list = field(default_factory=list)
    proximity_counters: dict = field(default_factory=dict)   # "a|b" -> consecutive near ticks
    interaction_memory: dict = field(default_factory=dict)   # "a|b" -> InteractionMemory
    environment:        EnvironmentState = field(default_factory=EnvironmentState)
    active_events:      list = field(default_factory=list)
    next_agent_id:      int  = 1
    next_tribe_id:      int  = 1


def id_number(entity_id: str) -> int:
    """Numeric suffix of 'agent-12' / 'tribe-3'; 0 when there is none."""
    tail = str(entity_id).rsplit('-', 1)[-1]
    return int(tail) if tail.isdigit() else 0


class IdAllocator:
    """Monotonic 'prefix-N' ids that never reuse a number already in play."""

    def __init__(self, prefix: str, start: int, existing=()):
        self.prefix = prefix
        self.next   = max([start] + [id_number(i) + 1 for i in existing])

    def __call__(self) -> str:
        new_id = f"{self.prefix}-{self.next}"
        self.next += 1
        return new_id
