"""
Runtime - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the prediction runtime.

- Parses arguments
- Merges them over environment or YAML configuration
- Starts the runtime

============================================================
USAGE
============================================================
    python app.py --game <GAME_PUBKEY>
    python app.py --game <A> --game <B> --serve --port 8000
    python app.py --config equilibrate.yaml --log-format text
    EQUILIBRATE_GAME_IDS=<A>,<B> python app.py

============================================================
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from core.exceptions import ConfigurationError

from .core import GameRuntime, setup_logging
from .models import VALID_COMMITMENTS, VALID_LOG_LEVELS, VALID_LOG_FORMATS, RuntimeConfig


# ============================================================
# ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="equilibrate",
        description="Equilibrate - local bucket balance prediction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Follow one game:
    %(prog)s --game 7Xf...9aQ

  Follow two games and serve the dashboard API:
    %(prog)s --game 7Xf...9aQ --game 3Lm...2bR --serve

  Load settings from YAML, override the RPC endpoint:
    %(prog)s --config equilibrate.yaml --rpc-url http://127.0.0.1:8899

Environment variables (EQUILIBRATE_*, DASHBOARD_*, LOG_*) and a .env
file are read first; --config replaces them; flags override both.
        """,
    )

    # --------------------------------------------------------
    # Source Options
    # --------------------------------------------------------
    source_group = parser.add_argument_group("Source Options")

    source_group.add_argument(
        "--game", "-g",
        dest="games",
        action="append",
        metavar="PUBKEY",
        help="Game account to follow (repeatable; the first is ticked)",
    )

    source_group.add_argument(
        "--rpc-url",
        type=str,
        metavar="URL",
        help="Solana JSON-RPC endpoint",
    )

    source_group.add_argument(
        "--commitment",
        type=str,
        choices=VALID_COMMITMENTS,
        help="Commitment level for account reads",
    )

    source_group.add_argument(
        "--poll-seconds",
        type=float,
        metavar="SECONDS",
        help="Interval between account reads (default: 2.0)",
    )

    # --------------------------------------------------------
    # Simulation Options
    # --------------------------------------------------------
    sim_group = parser.add_argument_group("Simulation Options")

    sim_group.add_argument(
        "--tick-ms",
        type=int,
        metavar="MS",
        help="Prediction tick interval in milliseconds (default: 100)",
    )

    sim_group.add_argument(
        "--debug",
        action="store_true",
        default=None,
        help="Raise on conservation drift instead of logging it",
    )

    sim_group.add_argument(
        "--no-parity",
        dest="parity",
        action="store_false",
        default=None,
        help="Disable parity validation against confirmed snapshots",
    )

    # --------------------------------------------------------
    # Dashboard Options
    # --------------------------------------------------------
    dashboard_group = parser.add_argument_group("Dashboard Options")

    dashboard_group.add_argument(
        "--serve",
        action="store_true",
        default=None,
        help="Serve the dashboard API",
    )

    dashboard_group.add_argument(
        "--host",
        type=str,
        help="Dashboard bind address (default: 127.0.0.1)",
    )

    dashboard_group.add_argument(
        "--port",
        type=int,
        help="Dashboard port (default: 8000)",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    log_group = parser.add_argument_group("Logging Options")

    log_group.add_argument(
        "--log-level",
        type=str,
        choices=VALID_LOG_LEVELS,
        help="Logging level (default: INFO)",
    )

    log_group.add_argument(
        "--log-format",
        type=str,
        choices=VALID_LOG_FORMATS,
        help="Logging format (default: json)",
    )

    # --------------------------------------------------------
    # Configuration
    # --------------------------------------------------------
    parser.add_argument(
        "--config", "-c",
        type=str,
        metavar="PATH",
        help="YAML configuration file",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 0.1.0",
    )

    return parser


# ============================================================
# CONFIGURATION BUILDER
# ============================================================

def build_config(args: argparse.Namespace) -> RuntimeConfig:
    """
    Build runtime configuration from CLI arguments.

    Raises:
        ConfigurationError: If --config cannot be loaded
    """
    if args.config:
        base = RuntimeConfig.from_yaml(args.config)
    else:
        base = RuntimeConfig.from_env()

    return base.with_overrides(
        game_ids=args.games,
        rpc_url=args.rpc_url,
        commitment=args.commitment,
        poll_interval_seconds=args.poll_seconds,
        tick_interval_ms=args.tick_ms,
        debug=args.debug,
        parity_enabled=args.parity,
        serve_dashboard=args.serve,
        dashboard_host=args.host,
        dashboard_port=args.port,
        log_level=args.log_level,
        log_format=args.log_format,
    )


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(config: RuntimeConfig) -> int:
    """Run until interrupted."""
    runtime = GameRuntime(config)
    try:
        await runtime.run_forever()
        return 0
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 130
    except Exception as e:
        logging.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        await runtime.stop()


def print_banner(config: RuntimeConfig) -> None:
    """Print startup banner."""
    print()
    print("=" * 60)
    print("  EQUILIBRATE PREDICTION RUNTIME")
    print("=" * 60)
    print(f"  RPC:        {config.rpc_url} ({config.commitment})")
    print(f"  Games:      {', '.join(config.game_ids)}")
    print(f"  Tick:       {config.tick_interval_ms} ms")
    print(f"  Poll:       {config.poll_interval_seconds} s")
    if config.serve_dashboard:
        print(f"  Dashboard:  http://{config.dashboard_host}:{config.dashboard_port}")
    print("=" * 60)
    print()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    setup_logging(config.log_level, config.log_format)
    print_banner(config)

    return asyncio.run(async_main(config))
