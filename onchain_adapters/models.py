"""
Snapshot Source Models - Decoded accounts and source health.

Decoded accounts are converted into the flow engine's GameConfig and
GameSnapshot before they reach the store.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from flow_engine.types import GameConfig, GameSnapshot


class SourceStatus(Enum):
    """Health status of a snapshot source."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


# ============================================================
# DECODED ACCOUNTS
# ============================================================


@dataclass(frozen=True)
class DecodedGame:
    """A decoded Game account."""
    game_id: str
    game_number: int           # on-chain `id`
    creator: str
    config: GameConfig
    snapshot: GameSnapshot

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_id": self.game_id,
            "game_number": self.game_number,
            "creator": self.creator,
            "config": self.config.to_dict(),
            "snapshot": self.snapshot.to_dict(),
        }


@dataclass(frozen=True)
class DecodedPlayerState:
    """A decoded PlayerState account."""
    bucket: int
    burn_penalty: int

    def to_dict(self) -> Dict[str, Any]:
        return {"bucket": self.bucket, "burn_penalty": self.burn_penalty}


@dataclass(frozen=True)
class SnapshotUpdate:
    """
    One observation of a game account.

    `ended` is True when the account no longer exists; config and
    snapshot are then None.
    """
    game_id: str
    config: Optional[GameConfig] = None
    snapshot: Optional[GameSnapshot] = None
    ended: bool = False
    source_name: str = ""
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_game(cls, game: DecodedGame, source_name: str = "") -> "SnapshotUpdate":
        return cls(
            game_id=game.game_id,
            config=game.config,
            snapshot=game.snapshot,
            source_name=source_name,
        )

    @classmethod
    def ended_game(cls, game_id: str, source_name: str = "") -> "SnapshotUpdate":
        return cls(game_id=game_id, ended=True, source_name=source_name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_id": self.game_id,
            "config": self.config.to_dict() if self.config else None,
            "snapshot": self.snapshot.to_dict() if self.snapshot else None,
            "ended": self.ended,
            "source_name": self.source_name,
            "received_at": self.received_at.isoformat(),
        }


# ============================================================
# HEALTH
# ============================================================


@dataclass
class SourceHealth:
    """Health status of a snapshot source."""
    status: SourceStatus
    last_check: datetime
    latency_ms: Optional[float] = None
    rate_limit_reset: Optional[datetime] = None
    error_count: int = 0
    last_error: Optional[str] = None
    last_error_time: Optional[datetime] = None
    consecutive_failures: int = 0
    requests_total: int = 0

    def is_healthy(self) -> bool:
        """Check if source is operational."""
        return self.status == SourceStatus.HEALTHY

    def is_usable(self) -> bool:
        """Check if source can still be used."""
        return self.status in (SourceStatus.HEALTHY, SourceStatus.DEGRADED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "last_check": self.last_check.isoformat(),
            "latency_ms": self.latency_ms,
            "rate_limit_reset": self.rate_limit_reset.isoformat() if self.rate_limit_reset else None,
            "error_count": self.error_count,
            "last_error": self.last_error,
            "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
            "consecutive_failures": self.consecutive_failures,
            "requests_total": self.requests_total,
        }


@dataclass
class SourceMetadata:
    """Metadata about a snapshot source."""
    name: str
    display_name: str
    version: str
    endpoint: str = ""
    commitment: Optional[str] = None
    poll_interval_seconds: Optional[float] = None
    push_driven: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "version": self.version,
            "endpoint": self.endpoint,
            "commitment": self.commitment,
            "poll_interval_seconds": self.poll_interval_seconds,
            "push_driven": self.push_driven,
        }


@dataclass
class SourceIncident:
    """Record of a source incident."""
    source_name: str
    incident_type: str
    timestamp: datetime
    error_message: str
    game_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_name": self.source_name,
            "incident_type": self.incident_type,
            "timestamp": self.timestamp.isoformat(),
            "error_message": self.error_message,
            "game_id": self.game_id,
        }
