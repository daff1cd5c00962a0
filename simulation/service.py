"""
Simulation - Prediction Service.

============================================================
RESPONSIBILITY
============================================================
The exposed surface of the prediction core.

- current_prediction(game_id, now): pull, safe every render frame
- on_prediction_tick(callback): push, driven by the SimulationClock
- Keeps the last good prediction per game so a failed tick
  leaves the previous one visible

============================================================
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from core.clock import ClockFactory, ClockProtocol
from flow_engine.engine import FlowEngine
from flow_engine.types import FlowPrediction
from snapshot_store.store import SnapshotStore
from snapshot_store.types import GameEvent, GameEventType, GameRecord
from view_model.builder import build_galaxy_view
from view_model.leave import LeaveEstimate, estimate_leave
from view_model.models import GalaxyView


logger = logging.getLogger(__name__)


# ============================================================
# RESULT TYPE
# ============================================================


@dataclass(frozen=True)
class GamePrediction:
    """A flow prediction and its derived view, tagged with the record version."""

    game_id: str
    version: int
    prediction: FlowPrediction
    view: GalaxyView
    computed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def balances(self) -> List[int]:
        return self.prediction.balances

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_id": self.game_id,
            "version": self.version,
            "prediction": self.prediction.to_dict(),
            "view": self.view.to_dict(),
            "computed_at": self.computed_at.isoformat(),
        }


PredictionCallback = Callable[[GamePrediction], None]


# ============================================================
# SERVICE
# ============================================================


class PredictionService:
    """
    Computes predictions from the store's current snapshot.

    Every prediction starts from the snapshot, never from a
    previous prediction.
    """

    def __init__(
        self,
        store: SnapshotStore,
        engine: Optional[FlowEngine] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._store = store
        self._engine = engine or FlowEngine()
        self._clock = clock or ClockFactory.get_clock()

        self._lock = threading.Lock()
        self._last_good: Dict[str, GamePrediction] = {}
        self._callbacks: List[PredictionCallback] = []

        self._unsubscribe_store = store.subscribe(self._on_game_event)

    @property
    def store(self) -> SnapshotStore:
        return self._store

    @property
    def clock(self) -> ClockProtocol:
        return self._clock

    # =========================================================
    # PULL
    # =========================================================

    def current_prediction(self, game_id: str, now: Optional[float] = None) -> GamePrediction:
        """
        Predict the game's buckets at `now` (defaults to the clock).

        Raises:
            GameNotLoadedError: If no snapshot has arrived yet
            InvalidSnapshotError: If the snapshot does not fit its config
        """
        return self._compute(self._store.require(game_id), now)

    def _compute(self, record: GameRecord, now: Optional[float]) -> GamePrediction:
        query_time = self._clock.timestamp() if now is None else now

        prediction = self._engine.predict(record.config, record.snapshot, query_time)
        return GamePrediction(
            game_id=record.game_id,
            version=record.version,
            prediction=prediction,
            view=build_galaxy_view(record.game_id, record.config, prediction),
        )

    def last_good(self, game_id: str) -> Optional[GamePrediction]:
        """Most recent prediction published by the ticker, if any."""
        with self._lock:
            return self._last_good.get(game_id)

    def leave_estimate(
        self,
        game_id: str,
        bucket_index: int,
        burn_penalty: int = 0,
        now: Optional[float] = None,
    ) -> LeaveEstimate:
        """
        Estimate leaving `bucket_index` at `now`.

        Raises:
            GameNotLoadedError: If no snapshot has arrived yet
            ValueError: If the bucket is not an occupied playable bucket
        """
        record = self._store.require(game_id)
        result = self._compute(record, now)
        return estimate_leave(
            record.config,
            result.prediction.balances,
            [b.occupancy for b in result.prediction.buckets],
            bucket_index,
            burn_penalty,
        )

    # =========================================================
    # PUSH
    # =========================================================

    def on_prediction_tick(self, callback: PredictionCallback) -> Callable[[], None]:
        """
        Register a callback for every published tick.

        Returns:
            Callable that removes the callback
        """
        with self._lock:
            self._callbacks.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return unsubscribe

    def publish_tick(self, result: GamePrediction) -> None:
        """Deliver a tick result to every registered callback."""
        with self._lock:
            self._last_good[result.game_id] = result
            callbacks = list(self._callbacks)

        for callback in callbacks:
            try:
                callback(result)
            except Exception as e:
                logger.exception(f"Prediction callback failed for {result.game_id}: {e}")

    # =========================================================
    # STORE EVENTS
    # =========================================================

    def _on_game_event(self, event: GameEvent) -> None:
        if event.event_type == GameEventType.END:
            with self._lock:
                self._last_good.pop(event.game_id, None)

    def close(self) -> None:
        """Detach from the store."""
        self._unsubscribe_store()
