"""
Tests for the Flow Engine.

============================================================
PURPOSE
============================================================
Covers the settlement arithmetic and its invariants:
1. Bucket identity and peer sets
2. Worked scenarios (spill, clamping, truncation)
3. Conservation and boundedness over many inputs
4. No-op behavior at zero and negative elapsed time
5. Input validation and error reporting

============================================================
"""

import logging
import random
from unittest.mock import PropertyMock, patch

import pytest

from core.exceptions import ConservationViolationError, InvalidSnapshotError
from flow_engine import (
    BucketId,
    BucketRole,
    EngineConfig,
    FlowDirection,
    FlowEngine,
    FlowPrediction,
    GameConfig,
    GameSnapshot,
    predict_balances,
)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def engine():
    """Create an engine with debug assertions enabled."""
    return FlowEngine(EngineConfig.for_testing())


@pytest.fixture
def two_bucket_config():
    """Create the reference two-bucket configuration."""
    return GameConfig(entry_fee=100, spill_rate=1, bucket_count=2, max_players=10)


@pytest.fixture
def reference_snapshot():
    """Create a snapshot with three players, all stake in holding."""
    return GameSnapshot.from_lists([300, 0, 0], [3, 1, 2], as_of=0)


# ============================================================
# BUCKET IDENTITY
# ============================================================

class TestBucketId:
    """Tests for the tagged bucket identity."""

    def test_holding_peers_are_all_playable(self):
        """Test holding bucket spills to every playable bucket."""
        peers = BucketId.holding().peers(3)
        assert [p.index for p in peers] == [1, 2, 3]
        assert all(p.role == BucketRole.PLAYABLE for p in peers)
        assert BucketId.holding().peer_count(3) == 3

    def test_playable_peers_exclude_self_and_holding(self):
        """Test playable bucket spills to other playable buckets only."""
        peers = BucketId.playable(2).peers(3)
        assert [p.index for p in peers] == [1, 3]
        assert BucketId.playable(2).peer_count(3) == 2

    def test_from_index(self):
        """Test index 0 maps to holding, others to playable."""
        assert BucketId.from_index(0) == BucketId.holding()
        assert BucketId.from_index(4) == BucketId.playable(4)

    def test_invalid_playable_index_rejected(self):
        """Test a playable bucket cannot take the holding index."""
        with pytest.raises(ValueError):
            BucketId.playable(0)


# ============================================================
# GAME CONFIG
# ============================================================

class TestGameConfig:
    """Tests for game configuration."""

    def test_max_fuel(self, two_bucket_config):
        """Test max fuel is entry fee times max players."""
        assert two_bucket_config.max_fuel == 1000

    def test_valid_config_has_no_errors(self, two_bucket_config):
        """Test a valid configuration passes validation."""
        assert two_bucket_config.validate() == []

    def test_out_of_range_values_reported(self):
        """Test every out-of-range value is reported."""
        config = GameConfig(entry_fee=0, spill_rate=0, bucket_count=65, max_players=1)
        errors = config.validate()
        assert len(errors) == 4


# ============================================================
# SCENARIOS
# ============================================================

class TestScenarios:
    """Worked examples of the settlement arithmetic."""

    def test_holding_splits_across_playable(self, engine, two_bucket_config, reference_snapshot):
        """Test holding spill is split evenly across both playable buckets."""
        prediction = engine.predict(two_bucket_config, reference_snapshot, now=10)

        assert prediction.balances == [270, 15, 15]
        assert prediction.buckets[0].expected_spill == 30
        assert prediction.buckets[0].realized_outflow == 30
        assert prediction.directions == [
            FlowDirection.DOWN,
            FlowDirection.UP,
            FlowDirection.UP,
        ]

    def test_zero_occupancy_contributes_no_spill(self, engine):
        """Test an empty bucket keeps its balance regardless of size."""
        config = GameConfig(entry_fee=100, spill_rate=5, bucket_count=3, max_players=10)
        snapshot = GameSnapshot.from_lists([0, 500, 0, 0], [0, 0, 0, 0], as_of=0)

        prediction = engine.predict(config, snapshot, now=60)

        assert prediction.balances == [0, 500, 0, 0]
        assert prediction.buckets[1].expected_spill == 0

    def test_spill_clamps_to_balance(self, engine, two_bucket_config):
        """Test a long elapsed time drains a bucket to exactly zero."""
        snapshot = GameSnapshot.from_lists([0, 50, 0], [0, 5, 0], as_of=0)

        prediction = engine.predict(two_bucket_config, snapshot, now=100)

        assert prediction.balances == [0, 0, 50]
        assert prediction.buckets[1].expected_spill == 50
        assert prediction.buckets[1].direction == FlowDirection.FLAT

    def test_floor_truncation_strands_remainder(self, engine):
        """Test a remainder below the peer count stays in its bucket."""
        config = GameConfig(entry_fee=100, spill_rate=1, bucket_count=3, max_players=10)
        snapshot = GameSnapshot.from_lists([100, 5, 0, 0], [1, 5, 0, 0], as_of=0)

        prediction = engine.predict(config, snapshot, now=1)

        holding = prediction.buckets[0]
        assert holding.expected_spill == 1
        assert holding.realized_outflow == 0

        spiller = prediction.buckets[1]
        assert spiller.expected_spill == 5
        assert spiller.realized_outflow == 4
        assert spiller.stranded_remainder == 1

        assert prediction.balances == [100, 1, 2, 2]
        assert prediction.predicted_total == prediction.snapshot_total

    def test_elapsed_uses_whole_seconds(self, engine, two_bucket_config, reference_snapshot):
        """Test fractional times are floored before subtracting."""
        snapshot = GameSnapshot(buckets=reference_snapshot.buckets, as_of=0.9)

        prediction = engine.predict(two_bucket_config, snapshot, now=1.1)

        assert prediction.elapsed_seconds == 1
        assert prediction.balances == [298, 1, 1]

    def test_rate_per_second(self, engine, two_bucket_config, reference_snapshot):
        """Test rate is net flow over elapsed seconds."""
        prediction = engine.predict(two_bucket_config, reference_snapshot, now=10)
        assert prediction.buckets[0].rate_per_second == -3.0
        assert prediction.buckets[1].rate_per_second == 1.5

    def test_convenience_function(self, two_bucket_config, reference_snapshot):
        """Test predict_balances returns the balance list."""
        balances = predict_balances(
            two_bucket_config,
            reference_snapshot,
            now=10,
            engine_config=EngineConfig.for_testing(),
        )
        assert balances == [270, 15, 15]


# ============================================================
# NO-OP CASES
# ============================================================

class TestNoOp:
    """Cases where the snapshot balances come back unchanged."""

    def test_zero_elapsed_is_identity(self, engine, two_bucket_config, reference_snapshot):
        """Test predicting at the snapshot time returns the snapshot."""
        prediction = engine.predict(two_bucket_config, reference_snapshot, now=0)

        assert prediction.balances == reference_snapshot.balances
        assert prediction.elapsed_seconds == 0
        assert prediction.stale is False

    def test_same_second_is_identity(self, engine, two_bucket_config, reference_snapshot):
        """Test sub-second progress does not move tokens."""
        prediction = engine.predict(two_bucket_config, reference_snapshot, now=0.95)
        assert prediction.balances == reference_snapshot.balances

    def test_query_before_snapshot_is_stale_noop(self, engine, two_bucket_config):
        """Test a query time before the snapshot is a flagged no-op."""
        snapshot = GameSnapshot.from_lists([300, 0, 0], [3, 1, 2], as_of=1000)

        prediction = engine.predict(two_bucket_config, snapshot, now=990)

        assert prediction.balances == [300, 0, 0]
        assert prediction.stale is True
        assert prediction.elapsed_seconds == 0
        assert all(d == FlowDirection.FLAT for d in prediction.directions)

    @pytest.mark.parametrize("elapsed", [1, 10, 1000, 10**6])
    def test_single_bucket_game_never_flows(self, engine, elapsed):
        """Test a game with one playable bucket keeps snapshot balances."""
        config = GameConfig(entry_fee=100, spill_rate=3, bucket_count=1, max_players=10)
        snapshot = GameSnapshot.from_lists([200, 300], [2, 2], as_of=0)

        prediction = engine.predict(config, snapshot, now=elapsed)

        assert prediction.balances == [200, 300]


# ============================================================
# INVARIANTS
# ============================================================

class TestInvariants:
    """Property checks over generated games."""

    @staticmethod
    def _random_game(rng):
        bucket_count = rng.randint(1, 12)
        max_players = rng.randint(2, 50)
        config = GameConfig(
            entry_fee=rng.randint(1, 10_000),
            spill_rate=rng.randint(1, 500),
            bucket_count=bucket_count,
            max_players=max_players,
        )

        # Distribute at most max_fuel tokens, as the program would
        remaining = config.max_fuel
        balances = []
        for _ in range(bucket_count + 1):
            amount = rng.randint(0, remaining)
            balances.append(amount)
            remaining -= amount
        rng.shuffle(balances)

        playable = [rng.randint(0, 5) for _ in range(bucket_count)]
        occupancies = [sum(playable)] + playable
        snapshot = GameSnapshot.from_lists(balances, occupancies, as_of=rng.randint(0, 10**9))
        return config, snapshot

    def test_conservation(self, engine):
        """Test the predicted sum only ever loses truncation dust."""
        rng = random.Random(20240601)
        for _ in range(500):
            config, snapshot = self._random_game(rng)
            now = snapshot.as_of + rng.randint(0, 10_000)

            prediction = engine.predict(config, snapshot, now)

            loss = snapshot.total_balance - sum(prediction.balances)
            assert 0 <= loss <= config.bucket_count

    def test_boundedness(self, engine):
        """Test no predicted balance leaves [0, max_fuel]."""
        rng = random.Random(7)
        for _ in range(500):
            config, snapshot = self._random_game(rng)
            now = snapshot.as_of + rng.randint(0, 10_000)

            prediction = engine.predict(config, snapshot, now)

            assert all(b >= 0 for b in prediction.balances)
            assert all(b <= config.max_fuel for b in prediction.clamped_balances())
            assert not prediction.has_bounds_violation

    def test_predictions_are_independent(self, engine, two_bucket_config, reference_snapshot):
        """Test a prediction does not depend on earlier predictions."""
        direct = engine.predict(two_bucket_config, reference_snapshot, now=7)
        for now in (1, 3, 5, 2):
            engine.predict(two_bucket_config, reference_snapshot, now=now)
        again = engine.predict(two_bucket_config, reference_snapshot, now=7)
        assert direct == again


# ============================================================
# VALIDATION & REPORTING
# ============================================================

class TestValidation:
    """Tests for malformed input and bug reporting."""

    def test_bucket_count_mismatch(self, engine, two_bucket_config):
        """Test a snapshot with the wrong number of buckets is rejected."""
        snapshot = GameSnapshot.from_lists([1, 2], [1, 1], as_of=0)
        with pytest.raises(InvalidSnapshotError) as exc_info:
            engine.predict(two_bucket_config, snapshot, now=10)
        assert exc_info.value.context["expected"] == "3"

    def test_negative_occupancy(self, engine, two_bucket_config):
        """Test a negative occupancy is rejected."""
        snapshot = GameSnapshot.from_lists([1, 2, 3], [1, -1, 0], as_of=0)
        with pytest.raises(InvalidSnapshotError) as exc_info:
            engine.predict(two_bucket_config, snapshot, now=10)
        assert exc_info.value.context["bucket_index"] == 1

    def test_negative_balance(self, engine, two_bucket_config):
        """Test a negative balance is rejected."""
        snapshot = GameSnapshot.from_lists([1, 2, -3], [0, 0, 0], as_of=0)
        with pytest.raises(InvalidSnapshotError):
            engine.predict(two_bucket_config, snapshot, now=10)

    @pytest.mark.parametrize("as_of", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_as_of(self, engine, two_bucket_config, as_of):
        """Test a snapshot time that is not a real number is rejected."""
        snapshot = GameSnapshot.from_lists([1, 2, 3], [1, 1, 0], as_of=as_of)
        with pytest.raises(InvalidSnapshotError):
            engine.predict(two_bucket_config, snapshot, now=10)

    def test_out_of_bounds_is_flagged_not_clamped(self, engine, caplog):
        """Test a balance above max fuel is reported and kept raw."""
        config = GameConfig(entry_fee=10, spill_rate=1, bucket_count=2, max_players=2)
        snapshot = GameSnapshot.from_lists([0, 50, 0], [0, 0, 0], as_of=0)

        with caplog.at_level(logging.WARNING):
            prediction = engine.predict(config, snapshot, now=5)

        assert prediction.balances == [0, 50, 0]
        assert prediction.out_of_bounds_indices == [1]
        assert prediction.clamped_balances() == [0, 20, 0]
        assert "outside" in caplog.text

    def test_conservation_violation_raises_in_debug(self, two_bucket_config, reference_snapshot):
        """Test a drifting total raises when debug assertions are on."""
        engine = FlowEngine(EngineConfig(debug_assertions=True))
        with patch.object(FlowPrediction, "truncation_loss", new_callable=PropertyMock, return_value=-5):
            with pytest.raises(ConservationViolationError) as exc_info:
                engine.predict(two_bucket_config, reference_snapshot, now=10)
        assert exc_info.value.context["max_loss"] == 2

    def test_conservation_violation_logged_in_production(self, two_bucket_config, reference_snapshot, caplog):
        """Test a drifting total is logged and the prediction returned."""
        engine = FlowEngine(EngineConfig(debug_assertions=False))
        with patch.object(FlowPrediction, "truncation_loss", new_callable=PropertyMock, return_value=-5):
            with caplog.at_level(logging.ERROR):
                prediction = engine.predict(two_bucket_config, reference_snapshot, now=10)
        assert prediction.balances == [270, 15, 15]
        assert "ConservationViolationError" in caplog.text


# ============================================================
# ENGINE CONFIG
# ============================================================

class TestEngineConfig:
    """Tests for engine configuration loading."""

    def test_from_env_debug(self, monkeypatch):
        """Test EQUILIBRATE_DEBUG enables assertions."""
        monkeypatch.setenv("EQUILIBRATE_DEBUG", "true")
        assert EngineConfig.from_env().debug_assertions is True

    def test_from_env_defaults(self, monkeypatch):
        """Test production defaults."""
        monkeypatch.delenv("EQUILIBRATE_DEBUG", raising=False)
        monkeypatch.delenv("EQUILIBRATE_BOUNDS_CHECK", raising=False)
        config = EngineConfig.from_env()
        assert config.debug_assertions is False
        assert config.bounds_check is True
