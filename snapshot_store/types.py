"""
Snapshot Store - Type Definitions.

============================================================
PURPOSE
============================================================
Immutable records handed to readers of the store, and the
events emitted when a record is replaced or removed.

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from flow_engine.types import GameConfig, GameSnapshot


# ============================================================
# RECORDS
# ============================================================


@dataclass(frozen=True)
class GameRecord:
    """
    Current state of one game as held by the store.

    A record is never mutated. A newer snapshot produces a new
    record with a higher version.
    """

    game_id: str
    config: GameConfig
    snapshot: GameSnapshot
    version: int
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_id": self.game_id,
            "config": self.config.to_dict(),
            "snapshot": self.snapshot.to_dict(),
            "version": self.version,
            "received_at": self.received_at.isoformat(),
        }


# ============================================================
# EVENTS
# ============================================================


class GameEventType(str, Enum):
    """What a snapshot replacement means for the game."""

    NEW = "new"            # First snapshot seen for the game
    REFRESH = "refresh"    # No occupancy changed
    MOVE = "move"          # A player changed bucket
    ENTER = "enter"        # A player joined
    LEAVE = "leave"        # A player left, game continues
    END = "end"            # Last player left, account closed


@dataclass(frozen=True)
class GameEvent:
    """
    Emitted to store listeners after every publish or removal.

    `record` is None for END. `winnings` is set for LEAVE (tokens
    taken from the left bucket) and END (everything that remained).
    """

    game_id: str
    event_type: GameEventType
    record: Optional[GameRecord]
    previous: Optional[GameRecord] = None

    bucket_index: Optional[int] = None
    old_bucket_index: Optional[int] = None
    winnings: Optional[int] = None

    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_id": self.game_id,
            "event_type": self.event_type.value,
            "version": self.record.version if self.record else None,
            "bucket_index": self.bucket_index,
            "old_bucket_index": self.old_bucket_index,
            "winnings": self.winnings,
            "timestamp": self.timestamp.isoformat(),
        }
