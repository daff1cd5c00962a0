"""
Snapshot Store Package.

Holds the latest confirmed on-chain state per game and tells
listeners what changed.

Components:
- types: GameRecord, GameEvent, GameEventType
- events: Update classification from consecutive snapshots
- store: Thread-safe SnapshotStore
"""

from .types import GameRecord, GameEvent, GameEventType
from .events import classify_update, classify_end
from .store import SnapshotStore, GameEventListener

__all__ = [
    "GameRecord",
    "GameEvent",
    "GameEventType",
    "classify_update",
    "classify_end",
    "SnapshotStore",
    "GameEventListener",
]
