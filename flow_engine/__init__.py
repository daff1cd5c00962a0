"""
Flow Engine - Package.

============================================================
PURPOSE
============================================================
Pure computation of predicted bucket balances and flow
directions between on-chain settlements.

    (config, snapshot, now) -> FlowPrediction

============================================================
WHAT IT IS NOT
============================================================
- NOT a clock reader: callers pass `now`
- NOT a cache: every call starts from the snapshot
- NOT a display layer: out-of-range values are flagged, not clamped

============================================================
"""

from .types import (
    BucketRole,
    FlowDirection,
    BucketId,
    GameConfig,
    BucketSnapshot,
    GameSnapshot,
    BucketFlow,
    FlowPrediction,
)

from .config import (
    EngineConfig,
    get_config,
    set_config,
)

from .engine import (
    FlowEngine,
    predict_balances,
)


__all__ = [
    # Enums
    "BucketRole",
    "FlowDirection",

    # Input types
    "BucketId",
    "GameConfig",
    "BucketSnapshot",
    "GameSnapshot",

    # Output types
    "BucketFlow",
    "FlowPrediction",

    # Configuration
    "EngineConfig",
    "get_config",
    "set_config",

    # Engine
    "FlowEngine",
    "predict_balances",
]
