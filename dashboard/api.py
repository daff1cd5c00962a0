"""
Dashboard - API.

============================================================
RESPONSIBILITY
============================================================
Provides REST and WebSocket access to predictions.

- GET  /health
- GET  /games
- GET  /games/{game_id}/prediction?now=
- GET  /games/{game_id}/view?now=
- GET  /games/{game_id}/leave-estimate?bucket=&burn_penalty=
- GET  /games/{game_id}/parity
- WS   /games/{game_id}/stream

Read-only: nothing here submits instructions on-chain.
============================================================
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dashboard.routers import games, health, stream
from onchain_adapters.base import BaseSnapshotSource
from parity_validation.validator import ParityValidator
from simulation.service import PredictionService
from simulation.ticker import SimulationClock

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"


def create_app(
    service: PredictionService,
    clock: Optional[SimulationClock] = None,
    source: Optional[BaseSnapshotSource] = None,
    parity: Optional[ParityValidator] = None,
    cors_origins: Optional[list] = None,
) -> FastAPI:
    """
    Build the dashboard application around running components.

    Args:
        service: Prediction service (required)
        clock: Simulation clock, reported in /health
        source: Snapshot source, reported in /health
        parity: Parity validator, enables /games/{id}/parity
        cors_origins: Allowed origins (default: all)
    """
    app = FastAPI(
        title="Equilibrate Prediction API",
        description="Locally predicted bucket balances for Equilibrate games.",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.service = service
    app.state.clock = clock
    app.state.source = source
    app.state.parity = parity
    app.state.started_at = datetime.now(timezone.utc)

    app.include_router(health.router)
    app.include_router(games.router)
    app.include_router(stream.router)

    @app.get("/", tags=["Root"])
    def root():
        return {
            "service": "Equilibrate Prediction API",
            "version": API_VERSION,
            "docs": "/docs",
        }

    logger.info(f"Dashboard API created (parity={'on' if parity else 'off'})")
    return app
