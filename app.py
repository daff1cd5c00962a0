#!/usr/bin/env python3
"""
Equilibrate Prediction Runtime - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Follows one or more Equilibrate games on Solana, predicts their
bucket balances between confirmed snapshots, and optionally
serves the predictions over HTTP and WebSocket.

- Compatible with PM2 process management
- Handles SIGINT and SIGTERM gracefully

============================================================
USAGE
============================================================
Direct execution:
    python app.py --game <GAME_PUBKEY> --serve

With PM2:
    pm2 start app.py --interpreter python --name equilibrate -- --serve

Environment-based configuration:
    EQUILIBRATE_GAME_IDS=<A>,<B> DASHBOARD_ENABLED=true python app.py

============================================================
"""

import sys

from runtime.cli import main


if __name__ == "__main__":
    sys.exit(main())
