"""
Snapshot Store - Current State Holder.

============================================================
RESPONSIBILITY
============================================================
Holds exactly one snapshot and config per active game.

- Replaces records atomically; readers never see a torn update
- Distinguishes "no data yet" (None) from zero balances
- Rejects malformed snapshots, keeping the previous record
- Notifies listeners with a classified GameEvent

============================================================
CONCURRENCY
============================================================
Single writer (the snapshot source), many readers (the
simulation clock, the API). Records are immutable, so the lock
only guards the mapping swap. Listeners run outside the lock.

============================================================
"""

import itertools
import logging
import threading
from typing import Callable, Dict, List, Optional

from core.exceptions import ConfigurationError, GameNotLoadedError
from flow_engine.engine import FlowEngine
from flow_engine.types import GameConfig, GameSnapshot

from .events import classify_end, classify_update
from .types import GameEvent, GameRecord


logger = logging.getLogger(__name__)


GameEventListener = Callable[[GameEvent], None]


class SnapshotStore:
    """
    Thread-safe holder of the latest on-chain snapshot per game.

    Example:
        store = SnapshotStore()
        unsubscribe = store.subscribe(lambda e: print(e.event_type))

        store.publish("game-1", config, snapshot)
        record = store.get("game-1")
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._records: Dict[str, GameRecord] = {}
        self._versions = itertools.count(1)
        self._listeners: List[GameEventListener] = []

    # =========================================================
    # WRITES
    # =========================================================

    def publish(self, game_id: str, config: GameConfig, snapshot: GameSnapshot) -> GameEvent:
        """
        Replace the game's record with a new snapshot.

        Raises:
            ConfigurationError: If the config is out of bounds
            InvalidSnapshotError: If the snapshot does not fit the config
        """
        errors = config.validate()
        if errors:
            raise ConfigurationError(
                f"Game {game_id} has invalid config: {'; '.join(errors)}",
                context={"game_id": game_id},
            )
        FlowEngine.validate_snapshot(config, snapshot, game_id=game_id)

        with self._lock:
            previous = self._records.get(game_id)
            record = GameRecord(
                game_id=game_id,
                config=config,
                snapshot=snapshot,
                version=next(self._versions),
            )
            self._records[game_id] = record

        event = classify_update(game_id, previous, record)
        logger.debug(f"Game {game_id} {event.event_type.value} (version {record.version})")
        self._emit(event)
        return event

    def remove(self, game_id: str) -> Optional[GameEvent]:
        """
        Drop a game whose account was closed.

        Returns:
            END event, or None if the game was not loaded
        """
        with self._lock:
            previous = self._records.pop(game_id, None)

        if previous is None:
            return None

        event = classify_end(game_id, previous)
        logger.info(f"Game {game_id} ended, {event.winnings} tokens paid out")
        self._emit(event)
        return event

    # =========================================================
    # READS
    # =========================================================

    def get(self, game_id: str) -> Optional[GameRecord]:
        """Current record, or None if no snapshot has arrived yet."""
        with self._lock:
            return self._records.get(game_id)

    def require(self, game_id: str) -> GameRecord:
        """
        Current record.

        Raises:
            GameNotLoadedError: If no snapshot has arrived yet
        """
        record = self.get(game_id)
        if record is None:
            raise GameNotLoadedError(game_id)
        return record

    def is_loaded(self, game_id: str) -> bool:
        return self.get(game_id) is not None

    def game_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    # =========================================================
    # LISTENERS
    # =========================================================

    def subscribe(self, listener: GameEventListener) -> Callable[[], None]:
        """
        Register a listener for game events.

        Returns:
            Callable that removes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: GameEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.exception(f"Listener failed on {event.event_type.value} for {event.game_id}: {e}")
