"""
Simulation - Clock.

============================================================
RESPONSIBILITY
============================================================
Re-evaluates the active game at a fixed cadence (default 100 ms)
and publishes the result through the PredictionService.

============================================================
DESIGN PRINCIPLES
============================================================
- One asyncio task; a tick finishes before the next sleep,
  so ticks never overlap
- No game selected means no task; selecting one ticks at once
  with no catch-up burst
- Every tick is tagged (game_id, generation). A tick whose tag
  no longer matches the selection is dropped unpublished
- A failed tick is logged; the last good prediction stays

============================================================
USAGE
============================================================
    clock = SimulationClock(service, tick_interval_ms=100)
    clock.select("game-1")      # from inside the event loop
    ...
    clock.select(None)          # stops immediately
    await clock.close()

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from core.constants import DEFAULT_TICK_INTERVAL_MS
from core.exceptions import (
    ConservationViolationError,
    GameNotLoadedError,
    InvalidSnapshotError,
)

from .service import GamePrediction, PredictionService


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TickTag:
    """Identity a tick was scheduled for."""

    game_id: str
    generation: int


class SimulationClock:
    """Fixed-cadence driver of the prediction service."""

    def __init__(
        self,
        service: PredictionService,
        tick_interval_ms: int = DEFAULT_TICK_INTERVAL_MS,
    ):
        if tick_interval_ms <= 0:
            raise ValueError("tick_interval_ms must be > 0")

        self._service = service
        self._interval = tick_interval_ms / 1000.0

        self._active: Optional[str] = None
        self._generation = 0
        self._task: Optional[asyncio.Task] = None

        self._tick_count = 0
        self._error_count = 0
        self._discarded_count = 0

    # --------------------------------------------------------
    # Properties
    # --------------------------------------------------------

    @property
    def active_game(self) -> Optional[str]:
        return self._active

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def current_tag(self) -> Optional[TickTag]:
        if self._active is None:
            return None
        return TickTag(self._active, self._generation)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def tick_interval_seconds(self) -> float:
        return self._interval

    def stats(self) -> dict:
        return {
            "active_game": self._active,
            "generation": self._generation,
            "running": self.is_running,
            "ticks": self._tick_count,
            "errors": self._error_count,
            "discarded": self._discarded_count,
        }

    # --------------------------------------------------------
    # Selection
    # --------------------------------------------------------

    def select(self, game_id: Optional[str]) -> None:
        """
        Change the active game.

        Cancels the running tick task and, when a game is given,
        starts a new one. Must be called from the event loop.
        """
        self._generation += 1
        self._active = game_id

        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

        if game_id is None:
            logger.info("Simulation clock stopped")
            return

        tag = TickTag(game_id, self._generation)
        self._task = asyncio.get_running_loop().create_task(self._run(tag))
        logger.info(f"Simulation clock ticking {game_id} (generation {tag.generation})")

    def stop(self) -> None:
        self.select(None)

    async def close(self) -> None:
        """Stop ticking and wait for the task to finish."""
        task = self._task
        self.select(None)
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                logger.debug("Tick task cancelled")

    # --------------------------------------------------------
    # Ticking
    # --------------------------------------------------------

    def _is_current(self, tag: TickTag) -> bool:
        return self._active == tag.game_id and self._generation == tag.generation

    def tick_once(self, tag: TickTag) -> Optional[GamePrediction]:
        """
        Run one tick for `tag`.

        Returns:
            The published prediction, or None if the tick was
            discarded or failed
        """
        if not self._is_current(tag):
            self._discarded_count += 1
            return None

        try:
            result = self._service.current_prediction(tag.game_id)
        except GameNotLoadedError:
            logger.debug(f"Tick skipped, {tag.game_id} has no snapshot yet")
            return None
        except InvalidSnapshotError as e:
            self._error_count += 1
            logger.warning(f"Tick skipped: {e.to_log_format()}")
            return None
        except ConservationViolationError as e:
            self._error_count += 1
            logger.critical(f"Tick skipped: {e.to_log_format()}")
            return None
        except Exception as e:
            self._error_count += 1
            logger.exception(f"Tick for {tag.game_id} failed: {e}")
            return None

        # Selection may have changed while computing
        if not self._is_current(tag):
            self._discarded_count += 1
            return None

        self._tick_count += 1
        self._service.publish_tick(result)
        return result

    async def _run(self, tag: TickTag) -> None:
        while self._is_current(tag):
            self.tick_once(tag)
            await asyncio.sleep(self._interval)
