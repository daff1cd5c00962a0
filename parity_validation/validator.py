"""
Parity Validator.

============================================================
PURPOSE
============================================================
Checks the local flow model against the remote program.

On every confirmed update:
1. Predict the previous snapshot forward to the new as_of
2. Apply the known effect of the instruction that caused it
   - ENTER:   holding bucket gains the entry fee
   - LEAVE:   left bucket loses predicted // occupancy_before
   - MOVE:    balances unchanged
   - REFRESH: balances unchanged
3. Compare bucket by bucket with the confirmed balances
4. Log drift and keep a bounded history

============================================================
STRICT PROHIBITIONS
============================================================
This module must NEVER:
- Modify snapshots in the store
- Feed corrected balances back into predictions
- Ignore mismatches

============================================================
"""

import logging
from collections import deque
from typing import Callable, Deque, List, Optional, Tuple

from core.constants import HOLDING_BUCKET_INDEX
from flow_engine.engine import FlowEngine
from snapshot_store.store import SnapshotStore
from snapshot_store.types import GameEvent, GameEventType

from .models import (
    BucketMismatch,
    MismatchSeverity,
    ParityReport,
    ParitySummary,
    ToleranceConfig,
)


logger = logging.getLogger(__name__)


_CHECKED_EVENTS = (
    GameEventType.ENTER,
    GameEventType.LEAVE,
    GameEventType.MOVE,
    GameEventType.REFRESH,
)


class ParityValidator:
    """Compares predicted balances with confirmed on-chain balances."""

    def __init__(
        self,
        engine: Optional[FlowEngine] = None,
        tolerance: Optional[ToleranceConfig] = None,
        history_size: int = 100,
    ):
        if history_size <= 0:
            raise ValueError("history_size must be > 0")

        self._engine = engine or FlowEngine()
        self._tolerance = tolerance or ToleranceConfig.default()
        self._history: Deque[ParityReport] = deque(maxlen=history_size)
        self._summary = ParitySummary()

    @property
    def tolerance(self) -> ToleranceConfig:
        return self._tolerance

    @property
    def summary(self) -> ParitySummary:
        return self._summary

    def attach(self, store: SnapshotStore) -> Callable[[], None]:
        """Validate every update published to `store`."""
        return store.subscribe(self.on_game_event)

    # =========================================================
    # VALIDATION
    # =========================================================

    def on_game_event(self, event: GameEvent) -> Optional[ParityReport]:
        """Store listener entry point."""
        if event.event_type not in _CHECKED_EVENTS or event.previous is None or event.record is None:
            return None
        return self.validate(event)

    def expected_balances(self, event: GameEvent) -> Optional[Tuple[List[int], str]]:
        """
        Balances the program should have written for `event`.

        Returns:
            (balances, effect description), or None if the bucket
            the event touched could not be identified
        """
        previous = event.previous
        current = event.record
        config = previous.config

        prediction = self._engine.predict(config, previous.snapshot, current.snapshot.as_of)
        balances = prediction.balances

        if event.event_type == GameEventType.ENTER:
            balances[HOLDING_BUCKET_INDEX] += config.entry_fee
            return balances, f"holding +{config.entry_fee}"

        if event.event_type == GameEventType.LEAVE:
            left = event.bucket_index
            if left is None:
                return None
            occupancy = previous.snapshot.buckets[left].occupancy
            winnings = balances[left] // occupancy
            balances[left] -= winnings
            return balances, f"bucket {left} -{winnings}"

        return balances, "none"

    def validate(self, event: GameEvent) -> Optional[ParityReport]:
        """
        Compare one confirmed update with its expected balances.

        Returns:
            ParityReport, or None if the event could not be checked
        """
        expected = self.expected_balances(event)
        if expected is None:
            self._summary.skipped += 1
            logger.warning(f"Parity check skipped for {event.game_id}: bucket of {event.event_type.value} unknown")
            return None

        balances, effect = expected
        previous = event.previous
        current = event.record
        confirmed = current.snapshot.balances
        bucket_count = previous.config.bucket_count

        mismatches = []
        for index, (want, got) in enumerate(zip(balances, confirmed)):
            if want == got:
                continue
            allowed = self._tolerance.allowed_difference(got, bucket_count)
            mismatches.append(BucketMismatch(
                bucket_index=index,
                expected=want,
                confirmed=got,
                allowed=allowed,
                severity=self._tolerance.severity(abs(got - want), allowed),
            ))

        report = ParityReport(
            game_id=event.game_id,
            event_type=event.event_type,
            from_version=previous.version,
            to_version=current.version,
            from_as_of=previous.snapshot.as_of,
            to_as_of=current.snapshot.as_of,
            expected_balances=tuple(balances),
            confirmed_balances=tuple(confirmed),
            mismatches=tuple(mismatches),
            effect=effect,
        )

        self._history.append(report)
        self._summary.record(report)
        self._log(report)
        return report

    def _log(self, report: ParityReport) -> None:
        if report.is_match:
            logger.debug(
                f"Parity OK for {report.game_id} v{report.to_version} "
                f"({report.event_type.value}, max diff {report.max_difference})"
            )
            return

        detail = ", ".join(
            f"#{m.bucket_index} expected={m.expected} confirmed={m.confirmed}"
            for m in report.drifted
        )
        message = (
            f"Parity drift for {report.game_id} v{report.from_version}->v{report.to_version} "
            f"({report.event_type.value}, effect {report.effect}): {detail}"
        )
        if report.highest_severity == MismatchSeverity.CRITICAL:
            logger.error(message)
        else:
            logger.warning(message)

    # =========================================================
    # HISTORY
    # =========================================================

    def reports(self, game_id: Optional[str] = None, limit: Optional[int] = None) -> List[ParityReport]:
        """Recent reports, oldest first."""
        reports = [r for r in self._history if game_id is None or r.game_id == game_id]
        if limit is not None:
            reports = reports[-limit:]
        return reports

    def drift_reports(self, game_id: Optional[str] = None) -> List[ParityReport]:
        return [r for r in self.reports(game_id) if not r.is_match]

    def clear(self) -> None:
        self._history.clear()
        self._summary = ParitySummary()
