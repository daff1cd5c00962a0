"""
Game prediction routes.

Errors map as:
- GameNotLoadedError          -> 404
- InvalidSnapshotError        -> 422
- ConservationViolationError  -> 500
- bad leave request           -> 400
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from core.exceptions import ConservationViolationError, GameNotLoadedError, InvalidSnapshotError
from dashboard.dependencies import get_parity, get_service
from dashboard.schemas import (
    GalaxyViewResponse,
    GamesResponse,
    GameSummary,
    LeaveEstimateResponse,
    ParityResponse,
    PredictionResponse,
)
from parity_validation.validator import ParityValidator
from simulation.service import GamePrediction, PredictionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/games", tags=["Games"])


def _predict(service: PredictionService, game_id: str, now: Optional[float]) -> GamePrediction:
    try:
        return service.current_prediction(game_id, now=now)
    except GameNotLoadedError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except InvalidSnapshotError as e:
        logger.warning(f"Prediction refused: {e.to_log_format()}")
        raise HTTPException(status_code=422, detail=e.message)
    except ConservationViolationError as e:
        logger.critical(f"Prediction failed: {e.to_log_format()}")
        raise HTTPException(status_code=500, detail=e.message)


@router.get("", response_model=GamesResponse)
def list_games(service: PredictionService = Depends(get_service)):
    """
    List every game with a loaded snapshot.
    """
    data = []
    for game_id in service.store.game_ids():
        record = service.store.get(game_id)
        if record is None:
            continue
        data.append(GameSummary(
            game_id=game_id,
            version=record.version,
            bucket_count=record.config.bucket_count,
            entry_fee=record.config.entry_fee,
            spill_rate=record.config.spill_rate,
            max_players=record.config.max_players,
            total_players=record.snapshot.total_players,
            total_balance=record.snapshot.total_balance,
            as_of=record.snapshot.as_of,
        ))
    return GamesResponse(data=data)


@router.get("/{game_id}/prediction", response_model=PredictionResponse)
def get_prediction(
    game_id: str,
    now: Optional[float] = Query(None, description="Epoch seconds; defaults to the service clock"),
    service: PredictionService = Depends(get_service),
):
    """
    Predicted bucket balances and flow directions at `now`.
    """
    result = _predict(service, game_id, now)
    prediction = result.prediction
    return PredictionResponse(
        game_id=result.game_id,
        version=result.version,
        balances=prediction.balances,
        directions=[int(d) for d in prediction.directions],
        **prediction.to_dict(),
    )


@router.get("/{game_id}/view", response_model=GalaxyViewResponse)
def get_view(
    game_id: str,
    now: Optional[float] = Query(None),
    service: PredictionService = Depends(get_service),
):
    """
    Display-ready view of the game at `now`.
    """
    result = _predict(service, game_id, now)
    return GalaxyViewResponse(version=result.version, **result.view.to_dict())


@router.get("/{game_id}/leave-estimate", response_model=LeaveEstimateResponse)
def get_leave_estimate(
    game_id: str,
    bucket: int = Query(..., ge=1, description="Playable bucket the player is in"),
    burn_penalty: int = Query(0, ge=0),
    now: Optional[float] = Query(None),
    service: PredictionService = Depends(get_service),
):
    """
    Estimated payout of leaving `bucket` at `now`.
    """
    _predict(service, game_id, now)
    try:
        estimate = service.leave_estimate(game_id, bucket, burn_penalty=burn_penalty, now=now)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return LeaveEstimateResponse(game_id=game_id, **estimate.to_dict())


@router.get("/{game_id}/parity", response_model=ParityResponse)
def get_parity_reports(
    game_id: str,
    limit: int = Query(20, ge=1, le=500),
    parity: ParityValidator = Depends(get_parity),
):
    """
    Recent prediction-vs-confirmed comparisons for the game.
    """
    return ParityResponse(
        game_id=game_id,
        summary=parity.summary.to_dict(),
        reports=[r.to_dict() for r in parity.reports(game_id, limit=limit)],
    )
