"""
In-Memory Snapshot Source - Push-driven source for tests and replays.

Snapshots are pushed by the caller and delivered to subscribers
immediately, in push order.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from flow_engine.types import GameConfig, GameSnapshot
from onchain_adapters.base import BaseSnapshotSource, SnapshotCallback, SnapshotSubscription
from onchain_adapters.models import (
    SnapshotUpdate,
    SourceHealth,
    SourceMetadata,
    SourceStatus,
)


logger = logging.getLogger(__name__)


_GameState = Tuple[GameConfig, GameSnapshot]


class InMemorySnapshotSource(BaseSnapshotSource):
    """Snapshot source whose accounts live in a dict."""

    def __init__(self) -> None:
        super().__init__()
        self._games: Dict[str, _GameState] = {}
        self._callbacks: Dict[str, List[SnapshotCallback]] = {}

    @property
    def name(self) -> str:
        return "memory"

    # ─────────────────────────────────────────────────────────────
    # Feeding
    # ─────────────────────────────────────────────────────────────

    def push(self, game_id: str, config: GameConfig, snapshot: GameSnapshot) -> SnapshotUpdate:
        """Store a new state for `game_id` and notify its subscribers."""
        self._games[game_id] = (config, snapshot)
        update = self.normalize((config, snapshot), game_id)
        self._notify(update)
        return update

    def end(self, game_id: str) -> SnapshotUpdate:
        """Remove `game_id` and notify its subscribers that it ended."""
        self._games.pop(game_id, None)
        update = self.normalize(None, game_id)
        self._notify(update)
        return update

    def _notify(self, update: SnapshotUpdate) -> None:
        for callback in list(self._callbacks.get(update.game_id, [])):
            self._deliver(callback, update)

    # ─────────────────────────────────────────────────────────────
    # Source interface
    # ─────────────────────────────────────────────────────────────

    async def fetch_raw(self, game_id: str) -> Optional[_GameState]:
        return self._games.get(game_id)

    def normalize(self, raw_data: Optional[_GameState], game_id: str) -> SnapshotUpdate:
        if raw_data is None:
            return SnapshotUpdate.ended_game(game_id, source_name=self.name)
        config, snapshot = raw_data
        return SnapshotUpdate(game_id=game_id, config=config, snapshot=snapshot, source_name=self.name)

    def subscribe(
        self,
        game_id: str,
        on_update: SnapshotCallback,
        poll_interval: Optional[float] = None,
    ) -> SnapshotSubscription:
        """Register `on_update`; the current state, if any, is delivered at once."""
        self._callbacks.setdefault(game_id, []).append(on_update)

        def remove() -> None:
            callbacks = self._callbacks.get(game_id, [])
            if on_update in callbacks:
                callbacks.remove(on_update)
            self._forget(subscription)

        subscription = SnapshotSubscription(game_id, on_cancel=remove)
        self._subscriptions.append(subscription)

        current = self._games.get(game_id)
        if current is not None:
            self._deliver(on_update, self.normalize(current, game_id))
        return subscription

    async def health_check(self) -> SourceHealth:
        self._health.status = SourceStatus.HEALTHY
        self._health.last_check = datetime.now(timezone.utc)
        return self._health

    def metadata(self) -> SourceMetadata:
        return SourceMetadata(
            name=self.name,
            display_name="In-memory",
            version="1.0",
            push_driven=True,
        )

    @property
    def game_ids(self) -> List[str]:
        return sorted(self._games)
