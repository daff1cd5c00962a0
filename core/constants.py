"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines game bounds enforced by the on-chain program and the
defaults used by the prediction runtime.

- Single source of truth for magic values
- No business logic here

============================================================
"""

# ============================================================
# GAME BOUNDS (mirrors the program's validation)
# ============================================================

HOLDING_BUCKET_INDEX = 0
FIRST_PLAYABLE_BUCKET_INDEX = 1

GAME_BUCKETS_MIN = 1
GAME_BUCKETS_MAX = 64

GAME_MAX_PLAYERS_MIN = 2
GAME_MAX_PLAYERS_MAX = 10_000

ENTRY_FEE_MIN_EXCLUSIVE = 0
SPILL_RATE_MIN_EXCLUSIVE = 0

# ============================================================
# SIMULATION DEFAULTS
# ============================================================

DEFAULT_TICK_INTERVAL_MS = 100
DEFAULT_POLL_INTERVAL_SECONDS = 2.0

# ============================================================
# DISPLAY
# ============================================================

# Amounts below this (in display units) render as "~0"
DISPLAY_DUST_THRESHOLD = "0.001"
DISPLAY_SIGNIFICANT_DIGITS = 3

DIRECTION_GLYPH_UP = "▲"
DIRECTION_GLYPH_DOWN = "▼"
