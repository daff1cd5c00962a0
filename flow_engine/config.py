"""
Flow Engine - Configuration.

============================================================
PURPOSE
============================================================
Switches that decide how loudly the engine reports modeling
bugs. They never change the arithmetic.

- debug_assertions: conservation drift raises instead of logging
- bounds_check: flag and log balances outside [0, max_fuel]

============================================================
ENVIRONMENT
============================================================
- EQUILIBRATE_DEBUG: "true" enables debug assertions
- EQUILIBRATE_BOUNDS_CHECK: "false" disables bounds flagging

============================================================
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional


_TRUTHY = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class EngineConfig:
    """Reporting configuration for the flow engine."""

    # Raise ConservationViolationError on drift (tests, debug builds)
    debug_assertions: bool = False

    # Flag predicted balances outside [0, max_fuel]
    bounds_check: bool = True

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load configuration from environment variables."""
        debug = os.getenv("EQUILIBRATE_DEBUG", "false").lower() in _TRUTHY
        bounds = os.getenv("EQUILIBRATE_BOUNDS_CHECK", "true").lower() in _TRUTHY
        return cls(debug_assertions=debug, bounds_check=bounds)

    @classmethod
    def for_testing(cls) -> "EngineConfig":
        return cls(debug_assertions=True, bounds_check=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "debug_assertions": self.debug_assertions,
            "bounds_check": self.bounds_check,
        }


# =============================================================
# GLOBAL CONFIG SINGLETON
# =============================================================


_default_config: Optional[EngineConfig] = None


def get_config() -> EngineConfig:
    """Get the global engine configuration."""
    global _default_config
    if _default_config is None:
        _default_config = EngineConfig.from_env()
    return _default_config


def set_config(config: EngineConfig) -> None:
    """Set the global engine configuration."""
    global _default_config
    _default_config = config
