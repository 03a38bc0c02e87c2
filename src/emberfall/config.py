"""
config.py — Shared configuration constants for the Emberfall simulation.
"""

# ── Run defaults ──────────────────────────────────────────────────────────
SEED          = 'default-seed'
TICKS         = 1000    # ticks simulated by `python -m emberfall`
WORLD_WIDTH   = 160
WORLD_HEIGHT  = 160
AGENT_COUNT   = 120     # initial population spawned by new_simulation()

# ── Output ────────────────────────────────────────────────────────────────
LOGS_DIR      = 'logs'          # run_<timestamp>.txt transcripts
DATA_DIR      = 'data'          # metrics / events CSVs
PRINT_EVERY   = 25              # ticks between progress lines on the terminal
SAVE_EVERY    = 0               # ticks between automatic snapshots (0 = never)

# ── Batch experiments ─────────────────────────────────────────────────────
EXPERIMENT_RUNS       = 5
EXPERIMENT_TICKS      = 300
EXPERIMENT_WORLD_SIZE = 96
