"""
test_tribes.py — pytest suite for tribes.py
============================================
Covers: formation from bonded pairs, newborn assignment, recruitment,
pruning and dissolution, mutual aid, storage caps, culture drift, and the
membership invariants of a live run.
"""

import pytest

from emberfall.agents import Agent
from emberfall.environment import HazardEvent
from emberfall.sim import Simulation, step
from emberfall.state import IdAllocator, SimulationState
from emberfall.tribes import (BASE_STORAGE, CULTURE_KEYS, FORMATION_TICKS, MAX_SIZE, Tribe,
                              add_environment_events, assign_newborns, culture_from_founders,
                              form_tribes, prune_tribes, recruit_loners, support_members)
from emberfall.world import generate_world


# ─────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────

def _alive(*agents):
    return {a.id: a for a in agents}


@pytest.fixture(scope="module")
def world():
    return generate_world(30, 30, "tribe-world")


@pytest.fixture(scope="module")
def thirty_ticks():
    sim = Simulation("tribe-invariants", 40, 40, 90)
    results = [sim.advance() for _ in range(30)]
    return sim, results


# ─────────────────────────────────────────────────────
# Formation
# ─────────────────────────────────────────────────────

class TestFormTribes:
    def test_bonded_sharing_pair_founds_tribe(self):
        a, b = Agent("agent-1", 4, 4), Agent("agent-2", 6, 4)
        tribes, m2t, log = [], {}, []
        key = "agent-1|agent-2"
        founded = form_tribes({key: FORMATION_TICKS}, {key}, _alive(a, b), tribes, m2t,
                              IdAllocator("tribe", 1), 12, log)
        assert len(founded) == 1
        tribe = tribes[0]
        assert tribe.id == "tribe-1"
        assert tribe.members == ["agent-1", "agent-2"]
        assert tribe.center == {'x': 5.0, 'y': 4.0}
        assert m2t == {"agent-1": "tribe-1", "agent-2": "tribe-1"}
        assert log[0].startswith("Tick 0012: TRIBE FORMED tribe-1")

    def test_needs_long_enough_bond(self):
        a, b = Agent("agent-1", 4, 4), Agent("agent-2", 5, 4)
        key = "agent-1|agent-2"
        tribes = []
        form_tribes({key: FORMATION_TICKS - 1}, {key}, _alive(a, b), tribes, {},
                    IdAllocator("tribe", 1), 1, [])
        assert tribes == []

    def test_needs_exchange_this_tick(self):
        a, b = Agent("agent-1", 4, 4), Agent("agent-2", 5, 4)
        tribes = []
        form_tribes({"agent-1|agent-2": 50}, set(), _alive(a, b), tribes, {},
                    IdAllocator("tribe", 1), 1, [])
        assert tribes == []

    def test_members_of_other_tribes_skipped(self):
        a, b = Agent("agent-1", 4, 4), Agent("agent-2", 5, 4)
        key = "agent-1|agent-2"
        tribes = []
        form_tribes({key: 10}, {key}, _alive(a, b), tribes, {"agent-1": "tribe-7"},
                    IdAllocator("tribe", 1), 1, [])
        assert tribes == []

    def test_founder_culture_in_range(self):
        founders = [Agent("a", 0, 0, traits={'intelligence': 1.0, 'agressivite': 0.0,
                                             'curiosite': 1.0, 'patience': 1.0,
                                             'prudence': 1.0, 'conscience_ecologique': 0.3})]
        culture = culture_from_founders(founders)
        assert set(culture) == set(CULTURE_KEYS)
        assert all(0.0 <= v <= 1.0 for v in culture.values())
        assert culture['tech'] == 1.0
        assert culture['war'] == 0.0


# ─────────────────────────────────────────────────────
# Membership maintenance
# ─────────────────────────────────────────────────────

class TestMembership:
    def test_newborn_joins_parent_tribe(self):
        tribe = Tribe("tribe-1", ["agent-1", "agent-2"])
        m2t = {"agent-1": "tribe-1", "agent-2": "tribe-1"}
        assert assign_newborns([tribe], m2t, [("agent-3", "tribe-1")]) == 1
        assert tribe.members[-1] == "agent-3"
        assert m2t["agent-3"] == "tribe-1"

    def test_full_tribe_refuses_newborn(self):
        tribe = Tribe("tribe-1", [f"agent-{i}" for i in range(MAX_SIZE)])
        assert assign_newborns([tribe], {}, [("agent-999", "tribe-1")]) == 0

    def test_loner_recruited_by_nearby_member(self):
        a, b, c = Agent("agent-1", 0, 0), Agent("agent-2", 2, 0), Agent("agent-3", 1, 1)
        tribe = Tribe("tribe-1", ["agent-1", "agent-2"], center={'x': 1, 'y': 0})
        m2t = {"agent-1": "tribe-1", "agent-2": "tribe-1"}
        joined = recruit_loners(_alive(a, b, c), [tribe], m2t, {"agent-1|agent-3": 3}, set())
        assert joined == 1
        assert "agent-3" in tribe.members
        assert c.memory[-1] == "joined:tribe-1"

    def test_weak_bond_does_not_recruit(self):
        a, b, c = Agent("agent-1", 0, 0), Agent("agent-2", 2, 0), Agent("agent-3", 1, 1)
        tribe = Tribe("tribe-1", ["agent-1", "agent-2"], center={'x': 1, 'y': 0})
        m2t = {"agent-1": "tribe-1", "agent-2": "tribe-1"}
        assert recruit_loners(_alive(a, b, c), [tribe], m2t, {"agent-1|agent-3": 1}, set()) == 0

    def test_prune_dissolves_small_tribe(self):
        a = Agent("agent-1", 0, 0)
        tribe = Tribe("tribe-1", ["agent-1", "agent-2"])
        m2t = {"agent-1": "tribe-1", "agent-2": "tribe-1"}
        log = []
        kept, dissolved = prune_tribes(_alive(a), [tribe], m2t, 9, log)
        assert kept == [] and dissolved == 1
        assert m2t == {}
        assert log == ["Tick 0009: TRIBE DISSOLVED tribe-1"]

    def test_prune_drops_strays(self):
        agents = [Agent("agent-1", 0, 0), Agent("agent-2", 1, 0), Agent("agent-3", 2, 0),
                  Agent("agent-4", 1, 1), Agent("agent-5", 1, 2), Agent("agent-6", 30, 0)]
        tribe = Tribe("tribe-1", [a.id for a in agents])
        m2t = {a.id: "tribe-1" for a in agents}
        kept, _ = prune_tribes(_alive(*agents), [tribe], m2t, 1, [])
        assert kept[0].members == ["agent-1", "agent-2", "agent-3", "agent-4", "agent-5"]
        assert "agent-6" not in m2t
        assert kept[0].center['x'] == pytest.approx(1.0)
        assert kept[0].center['y'] == pytest.approx(0.6)

    def test_duplicate_members_collapse(self):
        assert Tribe("tribe-1", ["a", "b", "a"]).members == ["a", "b"]


# ─────────────────────────────────────────────────────
# Mutual aid and culture
# ─────────────────────────────────────────────────────

class TestSupport:
    def test_starving_member_fed_from_store(self, world):
        a, b = Agent("agent-1", 3, 3, energy=10), Agent("agent-2", 3, 4, energy=80)
        tribe = Tribe("tribe-1", ["agent-1", "agent-2"], shared_resources={'food': 20})
        support_members([tribe], _alive(a, b), world, {}, 5, "s", {}, {}, [])
        assert a.energy == pytest.approx(10 + 4 * 1.6)
        assert tribe.shared_resources['food'] == pytest.approx(16)
        assert tribe.stability > 1.0

    def test_empty_store_raises_famine(self, world):
        a, b = Agent("agent-1", 3, 3, energy=80), Agent("agent-2", 3, 4, energy=80)
        tribe = Tribe("tribe-1", ["agent-1", "agent-2"])
        events, log = {}, []
        support_members([tribe], _alive(a, b), world, {}, 5, "s", events, {}, log)
        assert ("famine", 0.7) in events["tribe-1"]
        assert log == ["Tick 0005: FAMINE grips tribe-1"]
        assert tribe.stability == pytest.approx(0.95)

    def test_store_capped(self, world):
        a, b = Agent("agent-1", 3, 3, energy=80), Agent("agent-2", 3, 4, energy=80)
        tribe = Tribe("tribe-1", ["agent-1", "agent-2"],
                      shared_resources={'food': 5000, 'wood': 5000, 'materials': 5000})
        support_members([tribe], _alive(a, b), world, {}, 5, "s", {}, {}, [])
        assert all(v <= BASE_STORAGE for v in tribe.shared_resources.values())

    def test_deaths_reduce_stability_and_record_mortality(self, world):
        a, b = Agent("agent-1", 3, 3, energy=80), Agent("agent-2", 3, 4, energy=80)
        tribe = Tribe("tribe-1", ["agent-1", "agent-2"], shared_resources={'food': 50})
        events = {}
        support_members([tribe], _alive(a, b), world, {"tribe-1": 2}, 5, "s", events, {}, [])
        assert tribe.stability == pytest.approx(0.84)
        assert events["tribe-1"][0][0] == "mortality"

    def test_culture_stays_in_unit_interval(self, world):
        a, b = Agent("agent-1", 3, 3, energy=10), Agent("agent-2", 3, 4, energy=10)
        tribe = Tribe("tribe-1", ["agent-1", "agent-2"], shared_resources={'food': 200},
                      culture={k: 1.0 for k in CULTURE_KEYS})
        for t in range(50):
            support_members([tribe], _alive(a, b), world, {"tribe-1": 1}, t, "s", {}, {}, [])
        assert all(0.0 <= v <= 1.0 for v in tribe.culture.values())

    def test_nearby_hazard_becomes_catastrophe(self):
        tribe = Tribe("tribe-1", ["a", "b"], center={'x': 10, 'y': 10})
        fire  = HazardEvent("wildfire-25-1", "wildfire", 12, 10, 5, 0.6, 30, 30, 25)
        bloom = HazardEvent("resourceBloom-25-2", "resourceBloom", 10, 10, 5, 0.6, 30, 30, 25)
        events = {}
        add_environment_events([tribe], [fire, bloom], events)
        assert events == {"tribe-1": [("catastrophe", 0.6)]}


# ─────────────────────────────────────────────────────
# Invariants of a running society
# ─────────────────────────────────────────────────────

class TestInvariants:
    def test_membership_unique_and_alive(self, thirty_ticks):
        sim, _ = thirty_ticks
        alive = {a.id for a in sim.agents}
        seen = []
        for tribe in sim.tribes:
            assert len(tribe.members) >= 2
            assert len(set(tribe.members)) == len(tribe.members)
            assert set(tribe.members) <= alive
            seen.extend(tribe.members)
        assert len(seen) == len(set(seen))

    def test_tribe_fields_bounded(self, thirty_ticks):
        sim, _ = thirty_ticks
        for tribe in sim.tribes:
            assert tribe.stability >= 0
            assert all(0.0 <= v <= 1.0 for v in tribe.culture.values())
            assert all(v >= 0 for v in tribe.shared_resources.values())
            assert len(tribe.beliefs) <= 5
            assert tribe.global_tech_level >= 0

    def test_tribe_ids_never_reused(self, thirty_ticks):
        _, results = thirty_ticks
        formed = [line.split()[4] for r in results for line in r.event_log if "TRIBE FORMED" in line]
        assert len(formed) == len(set(formed))

    def test_injected_empty_tribe_dissolved(self):
        world = generate_world(16, 16, "inject")
        agents = [Agent(f"agent-{i}", i, i, energy=80) for i in range(1, 5)]
        state = SimulationState(tribes=[Tribe("tribe-99", [])], next_agent_id=5)
        result = step(world, agents, 1, "inject", state)
        assert all(tr.id != "tribe-99" for tr in result.tribes)
        assert "Tick 0001: TRIBE DISSOLVED tribe-99" in result.event_log
        assert result.stats['dissolved_tribes'] >= 1
