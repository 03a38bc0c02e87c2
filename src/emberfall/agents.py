# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
agents.py — Layer 1: the individual agent, its traits and memory.

Agents are plain records.  sim.step() copies every agent it receives before
touching it, so a caller's roster is never changed behind its back.
"""

from .rng import value

TRAIT_KEYS = (
    'curiosite',
    'intelligence',
    'agressivite',
    'prudence',
    'patience',
    'conscience_ecologique',
)

MEMORY_LIMIT  = 10
ENERGY_CAP    = 120
MUTATION_SPAN = 0.12   # child trait lands within ±0.06 of the parental mean


def _clamp01(v: float) -> float:
    return max(0.0, min(1.0, v))


class Agent:
    __slots__ = ('id', 'x', 'y', 'energy', 'health', 'age', 'traits', 'memory', 'is_alive')

    def __init__(self, id, x, y, energy=70.0, health=100.0, age=0, traits=None,
                 memory=None, is_alive=True):
        self.id       = id
        self.x, self.y = x, y
        self.energy   = energy
        self.health   = health
        self.age      = age
        self.traits   = dict(traits) if traits else {k: 0.5 for k in TRAIT_KEYS}
        self.memory   = list(memory or [])[-MEMORY_LIMIT:]
        self.is_alive = is_alive

    def __repr__(self) -> str:
        state = 'alive' if self.is_alive else 'dead'
        return f"Agent({self.id} @({self.x},{self.y}) e={self.energy:.1f} age={self.age} {state})"

    def remember(self, note: str) -> None:
        self.memory.append(note)
        if len(self.memory) > MEMORY_LIMIT:
            del self.memory[0]

    def copy(self) -> 'Agent':
        return Agent(self.id, self.x, self.y, self.energy, self.health, self.age,
                     self.traits, self.memory, self.is_alive)

    def die(self, cause: str) -> None:
        self.is_alive = False
        self.energy   = 0.0
        self.health   = 0.0
        self.remember(f"dead:{cause}")


def make_traits(seed, prefix: str = 'trait') -> dict[str, float]:
    return {k: _clamp01(value(seed, f"{prefix}:{k}")) for k in TRAIT_KEYS}


def spawn(agent_id: str, x: int, y: int, seed, prefix: str = 'spawn') -> Agent:
    return Agent(
        agent_id, x, y,
        energy = 60 + _clamp01(value(seed, f"{prefix}:energy")) * 30,
        traits = make_traits(seed, prefix),
        memory = ['spawn'],
    )


def reproduce(child_id: str, parent_a: Agent, parent_b: Agent, x: int, y: int, seed,
              education: float = 0.0) -> Agent:
    """Child with averaged parental traits and a small seeded mutation.

    Higher tribe education narrows the mutation, never below 40 % of the
    full ±0.06 span.
    """
    scale  = max(0.4, 1 - _clamp01(education) * 0.5)
    traits = {}
    for k in TRAIT_KEYS:
        base = (parent_a.traits[k] + parent_b.traits[k]) / 2
        traits[k] = _clamp01(base + (value(seed, f"mutation:{k}") - 0.5) * MUTATION_SPAN * scale)
    return Agent(child_id, x, y, energy=50.0, traits=traits,
                 memory=[f"born:{parent_a.id}+{parent_b.id}"])
