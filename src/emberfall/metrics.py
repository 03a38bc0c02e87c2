# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
metrics.py — Per-tick metrics logger for Emberfall runs.

Writes three CSV files under the output directory:

    metrics_seed_<seed>.csv   one row per tick (population, tribes, trust, tech, climate)
    events_seed_<seed>.csv    one row per tribe interaction
    run_summaries.csv         one row appended per finished run

Only consumes the stats dict and interaction events that step() already
returns, so it never touches simulation state.
"""

import csv
import os
import sys
import time
import tracemalloc
from pathlib import Path


METRIC_COLUMNS = [
    'seed', 'tick', 'population', 'births', 'deaths', 'tribes',
    'average_tribe_size', 'dissolved_tribes', 'interactions', 'mean_trust',
    'total_beliefs', 'mean_tech_level', 'season', 'year',
    'global_temp_shift', 'global_humidity_shift', 'active_hazards',
    'food', 'wood', 'water', 'materials',
]

EVENT_COLUMNS = ['seed', 'tick', 'tribe_a', 'tribe_b', 'action_a', 'action_b', 'event_type']

SUMMARY_COLUMNS = [
    'seed', 'final_tick', 'final_population', 'peak_population', 'min_population',
    'final_tribes', 'peak_tribes', 'total_births', 'total_deaths',
    'total_interactions', 'total_raids', 'final_mean_trust', 'final_mean_tech',
    'final_total_beliefs', 'wall_clock_seconds', 'peak_ram_mb',
]


class MetricsLogger:
    """Collects per-tick metrics and interaction events and writes them to CSV."""

    def __init__(self, seed, output_dir: str = "data"):
        self.seed       = str(seed)
        self.output_dir = output_dir
        Path(output_dir).mkdir(parents=True, exist_ok=True)

        self._metrics_path = os.path.join(output_dir, f"metrics_seed_{self.seed}.csv")
        self._events_path  = os.path.join(output_dir, f"events_seed_{self.seed}.csv")

        self._metrics_fh = open(self._metrics_path, 'w', newline='', encoding='utf-8')
        self._events_fh  = open(self._events_path, 'w', newline='', encoding='utf-8')
        self._metrics_writer = csv.writer(self._metrics_fh)
        self._events_writer  = csv.writer(self._events_fh)
        self._metrics_writer.writerow(METRIC_COLUMNS)
        self._events_writer.writerow(EVENT_COLUMNS)

        # Cumulative counters
        self.total_births       = 0
        self.total_deaths       = 0
        self.total_interactions = 0
        self.total_raids        = 0

        # Running stats for finalize
        self._peak_population = 0
        self._min_population  = None
        self._peak_tribes     = 0
        self._closed          = False

        self.start_time = time.time()
        tracemalloc.start()

    # ──────────────────────────────────────────────────────────────────────
    # Per-tick recording
    # ──────────────────────────────────────────────────────────────────────

    def record_tick(self, tick: int, stats: dict, interaction_events=()) -> None:
        pop       = stats.get('population', 0)
        resources = stats.get('resources', {})

        self.total_births += stats.get('births', 0)
        self.total_deaths += stats.get('deaths', 0)
        self._peak_population = max(self._peak_population, pop)
        if pop > 0:
            self._min_population = pop if self._min_population is None else min(self._min_population, pop)
        self._peak_tribes = max(self._peak_tribes, stats.get('tribes', 0))

        self._metrics_writer.writerow([
            self.seed, tick, pop,
            stats.get('births', 0), stats.get('deaths', 0), stats.get('tribes', 0),
            round(stats.get('average_tribe_size', 0.0), 3),
            stats.get('dissolved_tribes', 0), stats.get('interactions', 0),
            round(stats.get('mean_trust', 0.0), 4),
            stats.get('total_beliefs', 0),
            round(stats.get('mean_tech_level', 0.0), 3),
            stats.get('season', ''), stats.get('year', 0),
            round(stats.get('global_temp_shift', 0.0), 4),
            round(stats.get('global_humidity_shift', 0.0), 4),
            stats.get('active_hazards', 0),
            *(round(resources.get(k, 0.0), 1) for k in ('food', 'wood', 'water', 'materials')),
        ])

        for ev in interaction_events:
            self.total_interactions += 1
            if 'attack' in (ev['action_a'], ev['action_b']):
                self.total_raids += 1
            self._events_writer.writerow([
                self.seed, ev['tick'], ev['tribe_a'], ev['tribe_b'],
                ev['action_a'], ev['action_b'], ev['event_type'],
            ])

        # Flush every 100 ticks
        if tick % 100 == 0:
            self._metrics_fh.flush()
            self._events_fh.flush()

    # ──────────────────────────────────────────────────────────────────────
    # Finalize: run-level summary
    # ──────────────────────────────────────────────────────────────────────

    def summary_row(self, tick: int, stats: dict) -> list:
        wall_clock = round(time.time() - self.start_time, 2)
        peak_ram   = 0.0
        if tracemalloc.is_tracing():
            peak_ram = round(tracemalloc.get_traced_memory()[1] / (1024 * 1024), 2)
        final_pop = stats.get('population', 0)
        return [
            self.seed, tick, final_pop, self._peak_population,
            self._min_population if self._min_population is not None else final_pop,
            stats.get('tribes', 0), self._peak_tribes,
            self.total_births, self.total_deaths,
            self.total_interactions, self.total_raids,
            round(stats.get('mean_trust', 0.0), 4),
            round(stats.get('mean_tech_level', 0.0), 3),
            stats.get('total_beliefs', 0),
            wall_clock, peak_ram,
        ]

    def finalize(self, tick: int, stats: dict) -> None:
        """Append one row to run_summaries.csv and close the per-tick files."""
        row = self.summary_row(tick, stats)
        if tracemalloc.is_tracing():
            tracemalloc.stop()

        summary_path = os.path.join(self.output_dir, "run_summaries.csv")
        file_exists  = os.path.isfile(summary_path)
        try:
            with open(summary_path, 'a', newline='', encoding='utf-8') as f:
                writer = csv.writer(f)
                if not file_exists:
                    writer.writerow(SUMMARY_COLUMNS)
                writer.writerow(row)
        except OSError as exc:
            print(f"[metrics] could not write {summary_path}: {exc}", file=sys.stderr)
        self.close()

    # ──────────────────────────────────────────────────────────────────────
    # Cleanup
    # ──────────────────────────────────────────────────────────────────────

    def close(self) -> None:
        if self._closed:
            return
        for fh in (self._metrics_fh, self._events_fh):
            fh.flush()
            fh.close()
        self._closed = True
