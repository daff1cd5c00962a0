"""
Core Module - Wall Clock.

============================================================
RESPONSIBILITY
============================================================
Provides the injected wall-clock abstraction used for predictions.

- The flow engine never reads ambient time; callers pass `now`
- The simulation clock and API read time through this protocol
- Enables deterministic testing and replay of recorded snapshots

============================================================
DESIGN PRINCIPLES
============================================================
- Chain time is epoch seconds (UTC), so timestamp() is the primary API
- Mockable for testing
- Thread-safe

============================================================
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional, Union
import threading
import time


# ============================================================
# CLOCK PROTOCOL
# ============================================================

class ClockProtocol(ABC):
    """Abstract interface for the wall clock."""

    @abstractmethod
    def timestamp(self) -> float:
        """Get current Unix timestamp in seconds."""
        pass

    def now(self) -> datetime:
        """Get current UTC datetime."""
        return datetime.fromtimestamp(self.timestamp(), tz=timezone.utc)


# ============================================================
# SYSTEM CLOCK (PRODUCTION)
# ============================================================

class SystemClock(ClockProtocol):
    """
    Production clock using actual system time.

    Local device time may be skewed against chain time; the flow
    engine treats a query time before the snapshot time as a no-op.
    """

    def timestamp(self) -> float:
        """Get current Unix timestamp."""
        return time.time()


# ============================================================
# MOCK CLOCK (TESTING)
# ============================================================

class MockClock(ClockProtocol):
    """
    Mock clock for testing.

    Allows time manipulation for deterministic tests.
    """

    def __init__(self, initial_time: Optional[Union[float, datetime]] = None):
        """
        Initialize mock clock.

        Args:
            initial_time: Starting time as epoch seconds or datetime
                          (defaults to current time)
        """
        self._lock = threading.Lock()
        self._time = self._to_timestamp(initial_time) if initial_time is not None else time.time()

    @staticmethod
    def _to_timestamp(value: Union[float, datetime]) -> float:
        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            return value.timestamp()
        return float(value)

    def timestamp(self) -> float:
        """Get current (mocked) timestamp."""
        with self._lock:
            return self._time

    def set_time(self, new_time: Union[float, datetime]) -> None:
        """Set the current time."""
        with self._lock:
            self._time = self._to_timestamp(new_time)

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """
        Advance time by the specified amount.

        Args:
            seconds: Number of seconds to advance
            **kwargs: Passed to timedelta (minutes, hours, ...)
        """
        with self._lock:
            self._time += timedelta(seconds=seconds, **kwargs).total_seconds()


# ============================================================
# CLOCK FACTORY
# ============================================================

class ClockFactory:
    """Factory for the process-wide default clock."""

    _instance: Optional[ClockProtocol] = None
    _lock = threading.Lock()

    @classmethod
    def get_clock(cls) -> ClockProtocol:
        """Get the global clock instance."""
        with cls._lock:
            if cls._instance is None:
                cls._instance = SystemClock()
            return cls._instance

    @classmethod
    def set_clock(cls, clock: ClockProtocol) -> None:
        """Set the global clock instance."""
        with cls._lock:
            cls._instance = clock

    @classmethod
    def reset(cls) -> None:
        """Reset to default system clock."""
        with cls._lock:
            cls._instance = SystemClock()


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    # Protocols
    "ClockProtocol",

    # Implementations
    "SystemClock",
    "MockClock",

    # Factory
    "ClockFactory",
]
