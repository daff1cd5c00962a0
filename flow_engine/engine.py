"""
Flow Engine - Prediction.

============================================================
PURPOSE
============================================================
Predicts every bucket's balance at an arbitrary time between
on-chain settlements, replicating the program's integer
settlement arithmetic so the confirmed value lands without a
visible jump.

============================================================
ALGORITHM
============================================================
1. elapsed = floor(now) - floor(as_of); if elapsed <= 0 the
   snapshot balances are returned unchanged
2. spill_i = min(balance_i, occupancy_i * spill_rate * elapsed)
3. share_i = floor(spill_i / peer_count_i), paid to every peer
4. realized_outflow_i = share_i * peer_count_i
5. predicted_i = balance_i + inflow_i - realized_outflow_i

Floor truncation is kept exactly. A remainder smaller than the
peer count stays in its bucket.

============================================================
DESIGN PRINCIPLES
============================================================
- Pure: no I/O, no clock reads, no state between calls
- Safe to call concurrently from any number of readers
- Malformed input raises InvalidSnapshotError
- A stale query time is a no-op, never an error

============================================================
USAGE
============================================================
    from flow_engine import FlowEngine, GameConfig, GameSnapshot

    engine = FlowEngine()
    prediction = engine.predict(config, snapshot, now=clock.timestamp())

    for bucket in prediction.buckets:
        print(bucket.bucket, bucket.predicted_balance, bucket.direction.name)

============================================================
"""

import logging
import math
from typing import List, Optional

from core.exceptions import ConservationViolationError, InvalidSnapshotError

from .config import EngineConfig, get_config
from .types import (
    BucketFlow,
    BucketId,
    FlowDirection,
    FlowPrediction,
    GameConfig,
    GameSnapshot,
)


logger = logging.getLogger(__name__)


class FlowEngine:
    """
    Deterministic bucket token-flow predictor.

    The engine holds only its reporting configuration. Every
    prediction is computed from the snapshot alone, so predictions
    at two different times are independent and never drift.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or get_config()

    # =========================================================
    # VALIDATION
    # =========================================================

    @staticmethod
    def validate_snapshot(
        config: GameConfig,
        snapshot: GameSnapshot,
        game_id: Optional[str] = None,
    ) -> None:
        """
        Check the snapshot's shape against the game configuration.

        Raises:
            InvalidSnapshotError: bucket count mismatch, negative
                occupancy, negative balance or a
                non-finite as_of
        """
        if not math.isfinite(snapshot.as_of):
            raise InvalidSnapshotError(
                f"Snapshot as_of is not finite: {snapshot.as_of}",
                game_id=game_id,
                actual=snapshot.as_of,
            )

        expected = config.bucket_count + 1
        if len(snapshot.buckets) != expected:
            raise InvalidSnapshotError(
                f"Snapshot has {len(snapshot.buckets)} buckets, expected {expected}",
                game_id=game_id,
                expected=expected,
                actual=len(snapshot.buckets),
            )

        for index, bucket in enumerate(snapshot.buckets):
            if bucket.occupancy < 0:
                raise InvalidSnapshotError(
                    f"Bucket {index} has negative occupancy",
                    game_id=game_id,
                    bucket_index=index,
                    actual=bucket.occupancy,
                )
            if bucket.balance < 0:
                raise InvalidSnapshotError(
                    f"Bucket {index} has negative balance",
                    game_id=game_id,
                    bucket_index=index,
                    actual=bucket.balance,
                )

    # =========================================================
    # PREDICTION
    # =========================================================

    def predict(
        self,
        config: GameConfig,
        snapshot: GameSnapshot,
        now: float,
    ) -> FlowPrediction:
        """
        Predict every bucket's balance at `now`.

        Args:
            config: Game configuration
            snapshot: Last confirmed on-chain snapshot
            now: Query time in epoch seconds

        Returns:
            FlowPrediction with one BucketFlow per bucket

        Raises:
            InvalidSnapshotError: If the snapshot is malformed
            ConservationViolationError: If the predicted sum drifts and
                debug assertions are enabled
        """
        self.validate_snapshot(config, snapshot)

        elapsed = math.floor(now) - math.floor(snapshot.as_of)
        stale = now < snapshot.as_of

        if stale:
            logger.debug(
                f"Query time {now} precedes snapshot time {snapshot.as_of}, "
                f"returning snapshot balances"
            )

        # A single playable bucket has no playable peer; no flow applies
        if elapsed <= 0 or config.bucket_count < 2:
            return self._unchanged(config, snapshot, now, max(elapsed, 0), stale)

        bucket_ids = config.bucket_ids()
        spills = [0] * len(bucket_ids)
        outflows = [0] * len(bucket_ids)
        inflows = [0] * len(bucket_ids)

        for bucket_id, bucket in zip(bucket_ids, snapshot.buckets):
            spill = min(bucket.balance, bucket.occupancy * config.spill_rate * elapsed)
            peers = bucket_id.peers(config.bucket_count)

            share = spill // len(peers)
            for peer in peers:
                inflows[peer.index] += share

            spills[bucket_id.index] = spill
            outflows[bucket_id.index] = share * len(peers)

        flows = []
        for bucket_id, bucket in zip(bucket_ids, snapshot.buckets):
            i = bucket_id.index
            predicted = bucket.balance + inflows[i] - outflows[i]
            flows.append(
                BucketFlow(
                    bucket=bucket_id,
                    occupancy=bucket.occupancy,
                    snapshot_balance=bucket.balance,
                    predicted_balance=predicted,
                    expected_spill=spills[i],
                    realized_outflow=outflows[i],
                    inflow=inflows[i],
                    direction=self._direction(predicted, inflows[i], outflows[i], config.max_fuel),
                    rate_per_second=(inflows[i] - outflows[i]) / elapsed,
                    out_of_bounds=self.config.bounds_check and not 0 <= predicted <= config.max_fuel,
                )
            )

        prediction = FlowPrediction(
            as_of=snapshot.as_of,
            now=now,
            elapsed_seconds=elapsed,
            buckets=tuple(flows),
            max_fuel=config.max_fuel,
            stale=stale,
        )

        self._check_conservation(config, prediction)
        if prediction.has_bounds_violation:
            logger.warning(
                f"Predicted balances outside [0, {config.max_fuel}] "
                f"for buckets {prediction.out_of_bounds_indices}"
            )

        return prediction

    # =========================================================
    # HELPERS
    # =========================================================

    @staticmethod
    def _direction(predicted: int, inflow: int, outflow: int, max_fuel: int) -> FlowDirection:
        # Pinned at a boundary reads as flat to keep indicators steady
        if predicted <= 0 or predicted >= max_fuel:
            return FlowDirection.FLAT
        return FlowDirection.from_net(inflow - outflow)

    def _unchanged(
        self,
        config: GameConfig,
        snapshot: GameSnapshot,
        now: float,
        elapsed: int,
        stale: bool,
    ) -> FlowPrediction:
        flows = [
            BucketFlow(
                bucket=bucket_id,
                occupancy=bucket.occupancy,
                snapshot_balance=bucket.balance,
                predicted_balance=bucket.balance,
                out_of_bounds=self.config.bounds_check and not 0 <= bucket.balance <= config.max_fuel,
            )
            for bucket_id, bucket in zip(config.bucket_ids(), snapshot.buckets)
        ]
        return FlowPrediction(
            as_of=snapshot.as_of,
            now=now,
            elapsed_seconds=elapsed,
            buckets=tuple(flows),
            max_fuel=config.max_fuel,
            stale=stale,
        )

    def _check_conservation(self, config: GameConfig, prediction: FlowPrediction) -> None:
        loss = prediction.truncation_loss
        if 0 <= loss <= config.bucket_count:
            return

        error = ConservationViolationError(
            f"Predicted total {prediction.predicted_total} drifted from "
            f"snapshot total {prediction.snapshot_total}",
            snapshot_total=prediction.snapshot_total,
            predicted_total=prediction.predicted_total,
            max_loss=config.bucket_count,
        )
        if self.config.debug_assertions:
            raise error
        logger.error(error.to_log_format())


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================


def predict_balances(
    config: GameConfig,
    snapshot: GameSnapshot,
    now: float,
    engine_config: Optional[EngineConfig] = None,
) -> List[int]:
    """
    Predicted balance of every bucket at `now`.

    Raises:
        InvalidSnapshotError: If the snapshot is malformed
    """
    return FlowEngine(engine_config).predict(config, snapshot, now).balances
