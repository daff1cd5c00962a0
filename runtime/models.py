"""
Runtime - Models.

============================================================
RESPONSIBILITY
============================================================
Configuration for the prediction runtime.

- Loaded from the environment (after .env) or a YAML file
- CLI flags override whatever was loaded
- validate() returns every problem, not just the first

============================================================
ENVIRONMENT
============================================================
EQUILIBRATE_RPC_URL                 Solana JSON-RPC endpoint
EQUILIBRATE_COMMITMENT              processed | confirmed | finalized
EQUILIBRATE_GAME_IDS                comma-separated game account keys
EQUILIBRATE_TICK_INTERVAL_MS        default 100
EQUILIBRATE_POLL_INTERVAL_SECONDS   default 2.0
EQUILIBRATE_DEBUG                   "true" raises on conservation drift
EQUILIBRATE_PARITY                  "false" disables parity validation
DASHBOARD_ENABLED                   "true" serves the dashboard API
DASHBOARD_HOST / DASHBOARD_PORT
LOG_LEVEL / LOG_FORMAT

============================================================
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import load_dotenv

from core.constants import DEFAULT_POLL_INTERVAL_SECONDS, DEFAULT_TICK_INTERVAL_MS
from core.exceptions import ConfigurationError
from onchain_adapters.providers.solana_rpc import DEFAULT_COMMITMENT, DEFAULT_RPC_URL


VALID_COMMITMENTS = ("processed", "confirmed", "finalized")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
VALID_LOG_FORMATS = ("json", "text")


def _split_ids(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass
class RuntimeConfig:
    """Configuration for the prediction runtime."""

    # Source
    rpc_url: str = DEFAULT_RPC_URL
    """Solana JSON-RPC endpoint."""

    commitment: str = DEFAULT_COMMITMENT
    """Commitment level for account reads."""

    game_ids: List[str] = field(default_factory=list)
    """Game accounts to follow. The first one is ticked."""

    mint_decimals: Dict[str, int] = field(default_factory=dict)
    """Known token mint decimals, keyed by mint address."""

    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    """Interval between account reads."""

    # Simulation
    tick_interval_ms: int = DEFAULT_TICK_INTERVAL_MS
    """Prediction tick cadence."""

    debug: bool = False
    """Raise on conservation drift instead of logging it."""

    parity_enabled: bool = True
    """Compare predictions with confirmed snapshots."""

    # Dashboard
    serve_dashboard: bool = False
    """Serve the dashboard API alongside the runtime."""

    dashboard_host: str = "127.0.0.1"
    dashboard_port: int = 8000

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "RuntimeConfig":
        """Load configuration from environment variables (and .env)."""
        load_dotenv(dotenv_path)
        return cls(
            rpc_url=os.getenv("EQUILIBRATE_RPC_URL", DEFAULT_RPC_URL),
            commitment=os.getenv("EQUILIBRATE_COMMITMENT", DEFAULT_COMMITMENT),
            game_ids=_split_ids(os.getenv("EQUILIBRATE_GAME_IDS")),
            poll_interval_seconds=float(
                os.getenv("EQUILIBRATE_POLL_INTERVAL_SECONDS", str(DEFAULT_POLL_INTERVAL_SECONDS))
            ),
            tick_interval_ms=int(os.getenv("EQUILIBRATE_TICK_INTERVAL_MS", str(DEFAULT_TICK_INTERVAL_MS))),
            debug=os.getenv("EQUILIBRATE_DEBUG", "false").lower() == "true",
            parity_enabled=os.getenv("EQUILIBRATE_PARITY", "true").lower() == "true",
            serve_dashboard=os.getenv("DASHBOARD_ENABLED", "false").lower() == "true",
            dashboard_host=os.getenv("DASHBOARD_HOST", "127.0.0.1"),
            dashboard_port=int(os.getenv("DASHBOARD_PORT", "8000")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "RuntimeConfig":
        """
        Load configuration from a YAML file.

        Keys match the field names. Unknown keys are rejected.

        Raises:
            ConfigurationError: File missing, unreadable, or malformed
        """
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}", config_key="config")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in {path}: {e}",
                config_key="config",
                cause=e,
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config file {path} must contain a mapping",
                config_key="config",
                actual_value=type(data).__name__,
            )

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown config keys in {path}: {', '.join(unknown)}",
                config_key="config",
                actual_value=unknown,
            )

        if isinstance(data.get("game_ids"), str):
            data["game_ids"] = _split_ids(data["game_ids"])

        return cls(**data)

    def with_overrides(self, **overrides: Any) -> "RuntimeConfig":
        """Return a copy with every non-None override applied."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return RuntimeConfig(**values)

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not self.rpc_url.startswith(("http://", "https://")):
            errors.append("rpc_url must be an http(s) URL")

        if self.commitment not in VALID_COMMITMENTS:
            errors.append(f"commitment must be one of {', '.join(VALID_COMMITMENTS)}")

        if not self.game_ids:
            errors.append("at least one game id is required")

        if len(set(self.game_ids)) != len(self.game_ids):
            errors.append("game ids must be unique")

        if self.tick_interval_ms < 1:
            errors.append("tick_interval_ms must be at least 1")

        if self.poll_interval_seconds <= 0:
            errors.append("poll_interval_seconds must be positive")

        for mint, decimals in self.mint_decimals.items():
            if not 0 <= int(decimals) <= 255:
                errors.append(f"mint_decimals for {mint} must be in [0, 255]")

        if not 0 < self.dashboard_port < 65536:
            errors.append("dashboard_port must be in [1, 65535]")

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            errors.append(f"log_level must be one of {', '.join(VALID_LOG_LEVELS)}")

        if self.log_format not in VALID_LOG_FORMATS:
            errors.append("log_format must be json or text")

        return errors

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
