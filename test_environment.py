"""
test_environment.py — pytest suite for environment.py
======================================================
Covers: season progression, bounded climate drift, the hazard event
lifecycle and the spatial intensity falloff.
"""

import pytest

from emberfall.environment import (DRIFT_RATE, EVENT_TYPES, SEASONS, SHIFT_LIMIT, YEAR_LENGTH,
                                   ClimateState, EnvironmentState, HazardEvent,
                                   advance_environment, event_intensity_at, season_modifiers,
                                   season_state)


def _event(etype="drought", x=10, y=10, radius=5, intensity=0.8, remaining=10, tick=1):
    return HazardEvent(f"{etype}-{tick}-1", etype, x, y, radius, intensity, remaining, remaining, tick)


def _run(ticks, seed="env-seed", width=20, height=20):
    env, events = EnvironmentState(), []
    history = []
    for t in range(1, ticks + 1):
        env, events = advance_environment(env, events, t, seed, width, height)
        history.append((t, env, list(events)))
    return history


@pytest.fixture(scope="module")
def thousand_ticks():
    return _run(1000)


# ─────────────────────────────────────────────────────
# Seasons
# ─────────────────────────────────────────────────────

class TestSeasons:
    def test_year_starts_in_spring(self):
        s = season_state(0)
        assert (s.season_name, s.year, s.day_in_year) == ("spring", 0, 0)

    def test_quarters(self):
        assert season_state(YEAR_LENGTH // 4).season_name == "summer"
        assert season_state(YEAR_LENGTH // 2).season_name == "autumn"
        assert season_state(YEAR_LENGTH - 1).season_name == "winter"

    def test_year_rollover(self):
        s = season_state(YEAR_LENGTH + 3)
        assert s.year == 1
        assert s.day_in_year == 3
        assert s.season_name == "spring"

    def test_modifiers_follow_index(self):
        assert season_modifiers(season_state(YEAR_LENGTH - 1)) is SEASONS[3]

    def test_environment_season_tracks_tick(self, thousand_ticks):
        for t, env, _ in thousand_ticks:
            assert env.season == season_state(t)


# ─────────────────────────────────────────────────────
# Climate drift
# ─────────────────────────────────────────────────────

class TestClimate:
    def test_shifts_stay_bounded(self, thousand_ticks):
        for _, env, _ in thousand_ticks:
            assert -SHIFT_LIMIT <= env.climate.global_temp_shift <= SHIFT_LIMIT
            assert -SHIFT_LIMIT <= env.climate.global_humidity_shift <= SHIFT_LIMIT

    def test_one_step_per_tick(self, thousand_ticks):
        prev = ClimateState()
        for _, env, _ in thousand_ticks:
            assert abs(env.climate.global_temp_shift - prev.global_temp_shift) <= DRIFT_RATE / 2 + 1e-12
            assert abs(env.climate.global_humidity_shift - prev.global_humidity_shift) <= DRIFT_RATE / 2 + 1e-12
            prev = env.climate

    def test_clamped_at_limit(self):
        start = EnvironmentState(climate=ClimateState(SHIFT_LIMIT, -SHIFT_LIMIT, drift_rate=10.0))
        env, _ = advance_environment(start, [], 1, "clamp", 10, 10)
        assert -SHIFT_LIMIT <= env.climate.global_temp_shift <= SHIFT_LIMIT
        assert -SHIFT_LIMIT <= env.climate.global_humidity_shift <= SHIFT_LIMIT

    def test_deterministic(self):
        a = _run(120, "same")
        b = _run(120, "same")
        assert [h[1] for h in a] == [h[1] for h in b]
        assert [h[2] for h in a] == [h[2] for h in b]

    def test_input_not_mutated(self):
        start = EnvironmentState()
        advance_environment(start, [], 5, "x", 10, 10)
        assert start == EnvironmentState()


# ─────────────────────────────────────────────────────
# Hazard events
# ─────────────────────────────────────────────────────

class TestHazards:
    def test_events_valid_over_long_run(self, thousand_ticks):
        for t, _, events in thousand_ticks:
            for ev in events:
                assert ev.type in EVENT_TYPES
                assert ev.remaining_ticks > 0
                assert ev.remaining_ticks <= ev.duration_ticks
                assert 0.2 <= ev.intensity <= 1.0
                assert 0 <= ev.x < 20 and 0 <= ev.y < 20
                assert 5 <= ev.radius <= 13
                assert ev.started_at_tick <= t

    def test_new_events_only_on_cadence(self, thousand_ticks):
        for t, _, events in thousand_ticks:
            for ev in events:
                assert ev.started_at_tick % 25 == 0

    def test_countdown_and_expiry(self):
        ev = _event(remaining=2)
        _, events = advance_environment(EnvironmentState(), [ev], 1, "count", 20, 20)
        assert [e.remaining_ticks for e in events if e.id == ev.id] == [1]
        _, events = advance_environment(EnvironmentState(), events, 2, "count", 20, 20)
        assert all(e.id != ev.id for e in events)

    def test_event_records_are_not_mutated(self):
        ev = _event(remaining=5)
        advance_environment(EnvironmentState(), [ev], 1, "count", 20, 20)
        assert ev.remaining_ticks == 5


# ─────────────────────────────────────────────────────
# Intensity falloff
# ─────────────────────────────────────────────────────

class TestIntensity:
    def test_full_at_center(self):
        assert event_intensity_at([_event(intensity=0.8)], 10, 10) == pytest.approx(0.8)

    def test_zero_outside_radius(self):
        assert event_intensity_at([_event(radius=5)], 30, 30) == 0.0

    def test_falls_off_with_distance(self):
        ev = [_event(radius=5, intensity=1.0)]
        assert event_intensity_at(ev, 12, 10) == pytest.approx(0.6)

    def test_type_filter(self):
        ev = [_event("flood")]
        assert event_intensity_at(ev, 10, 10, "drought") == 0.0
        assert event_intensity_at(ev, 10, 10, "flood") > 0

    def test_overlap_clamped(self):
        evs = [_event(intensity=1.0, tick=i) for i in range(5)]
        assert event_intensity_at(evs, 10, 10) == 2.0
