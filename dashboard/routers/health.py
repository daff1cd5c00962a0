from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request

from dashboard.dependencies import get_clock, get_service, get_source
from dashboard.schemas import HealthResponse
from onchain_adapters.base import BaseSnapshotSource
from onchain_adapters.models import SourceStatus
from simulation.service import PredictionService
from simulation.ticker import SimulationClock

router = APIRouter(tags=["Health"])

_DEGRADED_SOURCE = (SourceStatus.RATE_LIMITED, SourceStatus.UNAVAILABLE)


@router.get("/health", response_model=HealthResponse)
def get_health(
    request: Request,
    service: PredictionService = Depends(get_service),
    source: Optional[BaseSnapshotSource] = Depends(get_source),
    clock: Optional[SimulationClock] = Depends(get_clock),
):
    """
    Liveness plus a summary of loaded games and source health.
    """
    now = datetime.now(timezone.utc)
    source_health = source.get_health() if source is not None else None
    status = "healthy"
    if source_health is not None and source_health.status in _DEGRADED_SOURCE:
        status = "degraded"

    return HealthResponse(
        status=status,
        timestamp=now,
        version=request.app.version,
        uptime_seconds=(now - request.app.state.started_at).total_seconds(),
        games_loaded=len(service.store),
        active_game=clock.active_game if clock is not None else None,
        source=source_health.to_dict() if source_health is not None else None,
    )
