"""
test_serialize.py — pytest suite for serialize.py
==================================================
Covers: snapshot round trips, resuming a run from a snapshot, sanitising
malformed values and rejecting structurally broken payloads.
"""

import json
import math

import pytest

from emberfall.beliefs import BeliefEffect, make_belief
from emberfall.serialize import (SNAPSHOT_VERSION, SnapshotError, decode_snapshot, decode_state,
                                 dumps, encode_snapshot, loads)
from emberfall.sim import Simulation
from emberfall.world import world_signature


# ─────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────

@pytest.fixture(scope="module")
def running_sim():
    sim = Simulation("snap-seed", 32, 32, 70)
    sim.advance(25)
    return sim


def _snapshot(sim):
    return encode_snapshot(sim.world, sim.agents, sim.state, sim.tick, sim.seed,
                           saved_at="2026-01-01T00:00:00+00:00")


def _restore(sim):
    snap = decode_snapshot(loads(dumps(_snapshot(sim))))
    return Simulation.from_parts(snap['world'], snap['agents'], snap['state'],
                                 snap['tick'], snap['seed'])


def _fingerprint(sim):
    return (
        world_signature(sim.world),
        [(a.id, a.x, a.y, a.energy, a.age) for a in sim.agents],
        [(t.id, t.members, t.culture, t.global_tech_level) for t in sim.tribes],
        {k: m.trust_score for k, m in sim.state.interaction_memory.items()},
    )


# ─────────────────────────────────────────────────────
# Round trip
# ─────────────────────────────────────────────────────

class TestRoundTrip:
    def test_header(self, running_sim):
        snap = _snapshot(running_sim)
        assert snap['version'] == SNAPSHOT_VERSION
        assert snap['seed'] == "snap-seed"
        assert snap['tick'] == 25
        assert snap['saved_at'] == "2026-01-01T00:00:00+00:00"

    def test_text_is_plain_json(self, running_sim):
        text = dumps(_snapshot(running_sim))
        assert json.loads(text)['world']['width'] == 32

    def test_encoding_is_deterministic(self, running_sim):
        assert dumps(_snapshot(running_sim)) == dumps(_snapshot(running_sim))

    def test_restored_state_matches(self, running_sim):
        restored = _restore(running_sim)
        assert restored.tick == running_sim.tick
        assert _fingerprint(restored) == _fingerprint(running_sim)
        assert restored.state.next_agent_id == running_sim.state.next_agent_id
        assert restored.state.next_tribe_id == running_sim.state.next_tribe_id
        assert restored.state.environment == running_sim.state.environment
        assert restored.state.active_events == running_sim.state.active_events
        assert restored.state.proximity_counters == running_sim.state.proximity_counters

    def test_resume_continues_identically(self):
        original = Simulation("resume-seed", 28, 28, 60)
        original.advance(15)
        resumed = _restore(original)
        original.advance(10)
        resumed.advance(10)
        assert _fingerprint(resumed) == _fingerprint(original)
        assert resumed.stats == original.stats


# ─────────────────────────────────────────────────────
# Sanitising
# ─────────────────────────────────────────────────────

class TestSanitise:
    def _base(self, running_sim):
        return json.loads(dumps(_snapshot(running_sim)))

    def test_non_finite_and_non_numeric_become_zero(self, running_sim):
        raw = self._base(running_sim)
        raw['agents'][0]['energy'] = float('nan')
        raw['agents'][1]['energy'] = "lots"
        raw['world']['tiles'][0]['resources']['food'] = float('inf')
        snap = decode_snapshot(raw)
        assert snap['agents'][0].energy == 0.0
        assert snap['agents'][1].energy == 0.0
        assert snap['world'].tiles[0]['resources']['food'] == 0.0

    def test_resources_clamped_to_caps(self, running_sim):
        raw = self._base(running_sim)
        raw['world']['tiles'][3]['resources']['water'] = 1e9
        tile = decode_snapshot(raw)['world'].tiles[3]
        assert tile['resources']['water'] == tile['resource_caps']['water']

    def test_traits_clamped(self, running_sim):
        raw = self._base(running_sim)
        raw['agents'][0]['traits']['prudence'] = 4.0
        assert decode_snapshot(raw)['agents'][0].traits['prudence'] == 1.0

    def test_agent_positions_kept_on_grid(self, running_sim):
        raw = self._base(running_sim)
        raw['agents'][0]['x'] = 999
        raw['agents'][0]['y'] = -5
        agent = decode_snapshot(raw)['agents'][0]
        assert (agent.x, agent.y) == (31, 0)

    def test_missing_sections_default_empty(self, running_sim):
        raw = self._base(running_sim)
        del raw['state']
        snap = decode_snapshot(raw)
        assert snap['state'].tribes == []
        assert snap['state'].active_events == []
        assert snap['state'].interaction_memory == {}

    def test_trust_clamped_on_decode(self):
        state = decode_state({'interaction_memory': {'tribe-1|tribe-2': {'trust_score': 9}}})
        assert state.interaction_memory['tribe-1|tribe-2'].trust_score == 1.0

    def test_member_kept_only_in_first_tribe(self):
        state = decode_state({'tribes': [
            {'id': 'tribe-1', 'members': ['agent-1', 'agent-2', 'agent-3']},
            {'id': 'tribe-2', 'members': ['agent-3', 'agent-4', 'agent-1']},
        ]})
        assert state.tribes[0].members == ['agent-1', 'agent-2', 'agent-3']
        assert state.tribes[1].members == ['agent-4']
        seen = [m for t in state.tribes for m in t.members]
        assert len(seen) == len(set(seen))

    def test_nothing_nan_after_decode(self, running_sim):
        snap = decode_snapshot(self._base(running_sim))
        for tile in snap['world'].tiles:
            assert not any(math.isnan(v) for v in tile['resources'].values())


# ─────────────────────────────────────────────────────
# Rejection
# ─────────────────────────────────────────────────────

class TestReject:
    def test_non_mapping(self):
        with pytest.raises(SnapshotError):
            decode_snapshot([1, 2, 3])

    def test_wrong_version(self, running_sim):
        raw = json.loads(dumps(_snapshot(running_sim)))
        raw['version'] = 99
        with pytest.raises(SnapshotError, match="version"):
            decode_snapshot(raw)

    def test_tile_count_mismatch(self, running_sim):
        raw = json.loads(dumps(_snapshot(running_sim)))
        raw['world']['tiles'].pop()
        with pytest.raises(SnapshotError, match="tiles"):
            decode_snapshot(raw)

    def test_unknown_belief_effect_key(self):
        belief = make_belief("b1", "war", "war_destiny", BeliefEffect(conflict_bias=0.1))
        raw_belief = {'id': belief.id, 'type': belief.type, 'trigger': belief.trigger,
                      'effect': {'conflict_bias': 0.1, 'summon_dragons': 1.0},
                      'strength': 0.5, 'age': 0}
        with pytest.raises(SnapshotError, match="summon_dragons"):
            decode_state({'tribes': [{'id': 'tribe-1', 'members': ['a', 'b'],
                                      'beliefs': [raw_belief]}]})

    def test_invalid_json(self):
        with pytest.raises(SnapshotError):
            loads("{not json")

    def test_snapshot_error_is_value_error(self):
        assert issubclass(SnapshotError, ValueError)
