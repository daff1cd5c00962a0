"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the exception hierarchy shared by every package.

- Provides clear exception hierarchy
- Separates malformed input from arithmetic bugs
- Carries severity and context for structured logging

============================================================
EXCEPTION HIERARCHY
============================================================
EquilibrateException (base)
├── ConfigurationError
├── SnapshotError
│   ├── InvalidSnapshotError
│   └── ConservationViolationError
├── GameNotLoadedError
└── (SnapshotSourceError lives in onchain_adapters.exceptions)

Stale timestamps are NOT an exception. A query time earlier than
the snapshot time is a no-op prediction.

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for logging."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, predictions may be wrong."""

    CRITICAL = "critical"
    """Modeling bug, requires immediate action."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Next tick or next snapshot can recover."""

    TRANSIENT = "transient"
    """Temporary error, retry may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, requires a code or config fix."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class EquilibrateException(Exception):
    """
    Base exception for all flow prediction errors.

    All exceptions carry:
    - severity: for log level selection
    - context: for debugging
    - classification: for error handling decisions
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_recoverable(self) -> bool:
        """Check if error is recoverable."""
        return self.classification in (
            ErrorClassification.RECOVERABLE,
            ErrorClassification.TRANSIENT,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        line = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        if ctx_str:
            line += f" | {ctx_str}"
        return line


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(EquilibrateException):
    """Error in game or runtime configuration."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


# ============================================================
# SNAPSHOT ERRORS
# ============================================================

class SnapshotError(EquilibrateException):
    """Base class for snapshot and prediction errors."""

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.RECOVERABLE


class InvalidSnapshotError(SnapshotError):
    """
    Snapshot is malformed (bucket count mismatch, negative occupancy
    or negative balance).

    Not retried. The tick that hit it is skipped and the previous
    valid prediction stays visible.
    """

    def __init__(
        self,
        message: str,
        game_id: Optional[str] = None,
        bucket_index: Optional[int] = None,
        expected: Optional[Any] = None,
        actual: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if game_id is not None:
            context["game_id"] = game_id
        if bucket_index is not None:
            context["bucket_index"] = bucket_index
        if expected is not None:
            context["expected"] = str(expected)
        if actual is not None:
            context["actual"] = str(actual)[:100]

        super().__init__(message, context=context, **kwargs)


class ConservationViolationError(SnapshotError):
    """
    Predicted token sum drifted from the snapshot sum by more than
    the allowed truncation loss.

    Raised only when debug assertions are enabled. Indicates a bug
    in the peer-distribution arithmetic.
    """

    default_severity = Severity.CRITICAL
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        snapshot_total: Optional[int] = None,
        predicted_total: Optional[int] = None,
        max_loss: Optional[int] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if snapshot_total is not None:
            context["snapshot_total"] = snapshot_total
        if predicted_total is not None:
            context["predicted_total"] = predicted_total
        if max_loss is not None:
            context["max_loss"] = max_loss

        super().__init__(message, context=context, **kwargs)


# ============================================================
# LOOKUP ERRORS
# ============================================================

class GameNotLoadedError(EquilibrateException):
    """No snapshot has been received for the requested game yet."""

    default_severity = Severity.LOW
    default_classification = ErrorClassification.TRANSIENT

    def __init__(self, game_id: str):
        super().__init__(
            message=f"Game {game_id} has no snapshot loaded",
            context={"game_id": game_id},
        )
        self.game_id = game_id


__all__ = [
    "Severity",
    "ErrorClassification",
    "EquilibrateException",
    "ConfigurationError",
    "SnapshotError",
    "InvalidSnapshotError",
    "ConservationViolationError",
    "GameNotLoadedError",
]
