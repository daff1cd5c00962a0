"""
Core Module Package.

This package contains the core infrastructure components
that all other packages depend on.

Components:
- clock: Injected wall-clock abstraction
- exceptions: Custom exception hierarchy
- constants: Game bounds and runtime defaults
"""

from .clock import ClockProtocol, SystemClock, MockClock, ClockFactory
from .exceptions import (
    Severity,
    ErrorClassification,
    EquilibrateException,
    ConfigurationError,
    SnapshotError,
    InvalidSnapshotError,
    ConservationViolationError,
    GameNotLoadedError,
)

__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "ClockFactory",
    "Severity",
    "ErrorClassification",
    "EquilibrateException",
    "ConfigurationError",
    "SnapshotError",
    "InvalidSnapshotError",
    "ConservationViolationError",
    "GameNotLoadedError",
]
