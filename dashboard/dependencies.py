"""
Dashboard - Request dependencies.

Components are attached to `app.state` by create_app and handed to
routes through Depends.
"""
from typing import Optional

from fastapi import HTTPException, Request

from onchain_adapters.base import BaseSnapshotSource
from parity_validation.validator import ParityValidator
from simulation.service import PredictionService
from simulation.ticker import SimulationClock


def get_service(request: Request) -> PredictionService:
    return request.app.state.service


def get_source(request: Request) -> Optional[BaseSnapshotSource]:
    return request.app.state.source


def get_clock(request: Request) -> Optional[SimulationClock]:
    return request.app.state.clock


def get_parity(request: Request) -> ParityValidator:
    parity = request.app.state.parity
    if parity is None:
        raise HTTPException(status_code=404, detail="Parity validation is not enabled")
    return parity
