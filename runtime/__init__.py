"""
Runtime Package.

Configuration, logging setup and process wiring.

Components:
- models: RuntimeConfig (env, .env, YAML)
- core: setup_logging, GameRuntime
- cli: argparse entry point
"""

from .models import RuntimeConfig
from .core import GameRuntime, setup_logging
from .cli import create_parser, build_config, main

__all__ = [
    "RuntimeConfig",
    "GameRuntime",
    "setup_logging",
    "create_parser",
    "build_config",
    "main",
]
