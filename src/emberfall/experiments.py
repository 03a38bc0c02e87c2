# (c) 2026 (KriaetvAspie / AspieTheBard)
# Licensed under the Polyform Noncommercial License 1.0.0
"""
experiments.py — Batch runner for Emberfall experiments.

Runs several independent simulations in-process with seeds derived from a
base seed ("{base}-1", "{base}-2", ...) and summarises the final state of
each run.  Every run owns its own Simulation, so runs never share id
counters or state.

Usage
─────
    python -m emberfall --experiments 5 --ticks 300 --width 96 --seed study
"""

import time

import numpy as np

from . import config
from .sim import Simulation

RECORD_METRICS = ('final_population', 'final_tribes', 'mean_tech', 'total_beliefs', 'mean_trust')


def run_single(seed: str, ticks: int, world_size: int, agent_count: int) -> dict:
    """Run one simulation to completion (or extinction) and return its record."""
    sim = Simulation(seed, world_size, world_size, agent_count)
    for _ in range(ticks):
        result = sim.advance()
        if not result.agents:
            break
    stats = sim.stats
    return {
        'seed':             seed,
        'ticks':            sim.tick,
        'final_population': stats.get('population', len(sim.agents)),
        'final_tribes':     stats.get('tribes', len(sim.tribes)),
        'mean_tech':        float(stats.get('mean_tech_level', 0.0)),
        'total_beliefs':    stats.get('total_beliefs', 0),
        'mean_trust':       float(stats.get('mean_trust', 0.0)),
    }


def summarize(records: list) -> dict:
    """mean / variance / min / max of every record metric across runs."""
    summary = {}
    for key in RECORD_METRICS:
        vals = np.array([r[key] for r in records], dtype=float)
        vals = vals[np.isfinite(vals)]
        if vals.size == 0:
            summary[key] = {'mean': 0.0, 'variance': 0.0, 'min': 0.0, 'max': 0.0}
            continue
        summary[key] = {
            'mean':     float(np.mean(vals)),
            'variance': float(np.var(vals)),
            'min':      float(np.min(vals)),
            'max':      float(np.max(vals)),
        }
    return summary


def run_experiments(runs: int = config.EXPERIMENT_RUNS, ticks_per_run: int = config.EXPERIMENT_TICKS,
                    world_size: int = config.EXPERIMENT_WORLD_SIZE, base_seed=config.SEED,
                    agent_count: int = config.AGENT_COUNT) -> dict:
    if runs < 1:
        raise ValueError(f"runs must be positive, got {runs}")
    if ticks_per_run < 1:
        raise ValueError(f"ticks_per_run must be positive, got {ticks_per_run}")

    records = []
    for i in range(1, runs + 1):
        seed = f"{base_seed}-{i}"
        print(f"  seed={seed}  ...", end='', flush=True)
        t0 = time.time()
        rec = run_single(seed, ticks_per_run, world_size, agent_count)
        print(f"  OK  ({time.time() - t0:.1f}s, pop {rec['final_population']}, "
              f"tribes {rec['final_tribes']})")
        records.append(rec)

    return {
        'runs':          runs,
        'ticks_per_run': ticks_per_run,
        'world_size':    world_size,
        'records':       records,
        'summary':       summarize(records),
    }


def format_summary(report: dict) -> str:
    lines = [
        '=' * 60,
        f"  Experiments: {report['runs']} runs × {report['ticks_per_run']} ticks "
        f"({report.get('world_size', '?')}² world)",
        '=' * 60,
        f"  {'metric':<18}{'mean':>10}{'variance':>12}{'min':>10}{'max':>10}",
    ]
    for key, s in report['summary'].items():
        lines.append(f"  {key:<18}{s['mean']:>10.3f}{s['variance']:>12.3f}"
                     f"{s['min']:>10.3f}{s['max']:>10.3f}")
    lines.append('=' * 60)
    return '\n'.join(lines)
