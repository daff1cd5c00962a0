"""
Tests for Parity Validation.

============================================================
PURPOSE
============================================================
1. Tolerance configuration
2. Event effects (enter, leave, move, refresh)
3. Drift detection and severity
4. Bounded history and summary

============================================================
"""

from decimal import Decimal

import pytest

from flow_engine import EngineConfig, FlowEngine, GameConfig, GameSnapshot
from parity_validation import MismatchSeverity, ParityValidator, ToleranceConfig
from snapshot_store import GameEvent, GameEventType, SnapshotStore


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def config():
    """Create the reference two-bucket configuration."""
    return GameConfig(entry_fee=100, spill_rate=1, bucket_count=2, max_players=10)


@pytest.fixture
def store(config):
    """Create a store holding the reference game at t=0."""
    store = SnapshotStore()
    store.publish("game-1", config, GameSnapshot.from_lists([300, 0, 0], [3, 1, 2], as_of=0))
    return store


@pytest.fixture
def validator(store):
    """Create a validator attached to the store."""
    validator = ParityValidator(engine=FlowEngine(EngineConfig.for_testing()))
    validator.attach(store)
    return validator


def snap(balances, occupancies, as_of):
    return GameSnapshot.from_lists(balances, occupancies, as_of=as_of)


# ============================================================
# TOLERANCE
# ============================================================

class TestToleranceConfig:
    """Tests for tolerance thresholds."""

    def test_default_allows_truncation(self):
        """Test the default tolerance allows one token per bucket."""
        assert ToleranceConfig.default().allowed_difference(1000, bucket_count=3) == 3

    def test_strict_allows_nothing(self):
        """Test the strict tolerance allows no difference."""
        assert ToleranceConfig.strict().allowed_difference(1000, bucket_count=3) == 0

    def test_relative_tolerance(self):
        """Test relative tolerance widens the allowance for large balances."""
        tolerance = ToleranceConfig(relative_tolerance=Decimal("0.01"), allow_truncation=False)
        assert tolerance.allowed_difference(50_000, bucket_count=3) == 500

    @pytest.mark.parametrize("difference,expected", [
        (2, MismatchSeverity.INFO),
        (3, MismatchSeverity.WARNING),
        (20, MismatchSeverity.WARNING),
        (21, MismatchSeverity.CRITICAL),
    ])
    def test_severity(self, difference, expected):
        """Test severity bands around the allowance."""
        assert ToleranceConfig.default().severity(difference, allowed=2) == expected


# ============================================================
# EVENT EFFECTS
# ============================================================

class TestEventEffects:
    """Tests for expected balances per event type."""

    def test_refresh_matches_prediction(self, store, config, validator):
        """Test an unchanged occupancy compares against the plain prediction."""
        store.publish("game-1", config, snap([270, 15, 15], [3, 1, 2], as_of=10))

        report = validator.reports()[-1]
        assert report.event_type == GameEventType.REFRESH
        assert report.expected_balances == (270, 15, 15)
        assert report.is_match
        assert report.mismatches == ()

    def test_enter_adds_entry_fee(self, store, config, validator):
        """Test an entry credits the holding bucket with the entry fee."""
        store.publish("game-1", config, snap([370, 15, 15], [4, 2, 2], as_of=10))

        report = validator.reports()[-1]
        assert report.event_type == GameEventType.ENTER
        assert report.expected_balances == (370, 15, 15)
        assert report.effect == "holding +100"
        assert report.is_match

    def test_leave_removes_player_share(self, store, config, validator):
        """Test a leave removes predicted // occupancy from the left bucket."""
        store.publish("game-1", config, snap([270, 15, 8], [2, 1, 1], as_of=10))

        report = validator.reports()[-1]
        assert report.event_type == GameEventType.LEAVE
        assert report.expected_balances == (270, 15, 8)
        assert report.effect == "bucket 2 -7"
        assert report.is_match

    def test_move_leaves_balances(self, store, config, validator):
        """Test a move compares against the plain prediction."""
        store.publish("game-1", config, snap([270, 15, 15], [3, 2, 1], as_of=10))

        report = validator.reports()[-1]
        assert report.event_type == GameEventType.MOVE
        assert report.expected_balances == (270, 15, 15)
        assert report.is_match

    def test_new_and_end_not_checked(self, store, config, validator):
        """Test first snapshots and removals produce no report."""
        store.publish("game-2", config, snap([100, 0, 0], [1, 1, 0], as_of=0))
        store.remove("game-2")

        assert validator.reports("game-2") == []

    def test_unknown_leave_bucket_skipped(self, store, config, validator):
        """Test a leave without an identified bucket is skipped."""
        previous = store.get("game-1")
        current = store.publish("game-1", config, snap([270, 15, 15], [3, 1, 2], as_of=10)).record
        event = GameEvent(
            game_id="game-1",
            event_type=GameEventType.LEAVE,
            record=current,
            previous=previous,
            bucket_index=None,
        )

        assert validator.validate(event) is None
        assert validator.summary.skipped == 1


# ============================================================
# DRIFT
# ============================================================

class TestDrift:
    """Tests for mismatch detection."""

    def test_truncation_difference_tolerated(self, store, config, validator):
        """Test a one-token remainder difference is within tolerance."""
        store.publish("game-1", config, snap([270, 16, 14], [3, 1, 2], as_of=10))

        report = validator.reports()[-1]
        assert report.is_match
        assert len(report.mismatches) == 2
        assert all(m.severity == MismatchSeverity.INFO for m in report.mismatches)

    def test_strict_flags_truncation_difference(self, store, config):
        """Test the strict tolerance reports any difference."""
        validator = ParityValidator(tolerance=ToleranceConfig.strict())
        validator.attach(store)

        store.publish("game-1", config, snap([270, 16, 14], [3, 1, 2], as_of=10))

        report = validator.reports()[-1]
        assert not report.is_match
        assert report.highest_severity == MismatchSeverity.WARNING

    def test_warning_drift(self, store, config, validator):
        """Test a moderate difference is a warning."""
        store.publish("game-1", config, snap([270, 15, 25], [3, 1, 2], as_of=10))

        report = validator.reports()[-1]
        assert not report.is_match
        assert report.highest_severity == MismatchSeverity.WARNING
        assert report.drifted[0].bucket_index == 2
        assert report.drifted[0].difference == 10
        assert report.max_difference == 10

    def test_critical_drift_logged(self, store, config, validator, caplog):
        """Test a large difference is critical and logged at ERROR."""
        with caplog.at_level("ERROR", logger="parity_validation.validator"):
            store.publish("game-1", config, snap([270, 15, 60], [3, 1, 2], as_of=10))

        report = validator.reports()[-1]
        assert report.highest_severity == MismatchSeverity.CRITICAL
        assert "Parity drift for game-1" in caplog.text

    def test_report_serializes(self, store, config, validator):
        """Test reports convert to plain dictionaries."""
        store.publish("game-1", config, snap([270, 15, 25], [3, 1, 2], as_of=10))

        data = validator.reports()[-1].to_dict()
        assert data["event_type"] == "refresh"
        assert data["is_match"] is False
        assert data["mismatches"][0]["difference"] == 10


# ============================================================
# HISTORY
# ============================================================

class TestHistory:
    """Tests for the bounded history and summary."""

    def test_history_is_bounded(self, store, config):
        """Test only the most recent reports are kept."""
        validator = ParityValidator(history_size=2)
        validator.attach(store)

        for t in (1, 2, 3):
            store.publish("game-1", config, snap([300, 0, 0], [3, 1, 2], as_of=t))

        reports = validator.reports()
        assert len(reports) == 2
        assert [r.to_as_of for r in reports] == [2, 3]
        assert validator.summary.total_checks == 3

    def test_summary_counts(self, store, config, validator):
        """Test matches and drifts are counted."""
        store.publish("game-1", config, snap([270, 15, 15], [3, 1, 2], as_of=10))
        store.publish("game-1", config, snap([240, 30, 60], [3, 1, 2], as_of=20))

        summary = validator.summary
        assert summary.total_checks == 2
        assert summary.matches == 1
        assert summary.critical + summary.warnings == 1
        assert summary.match_rate == 0.5
        assert summary.last_drift_at is not None
        assert len(validator.drift_reports("game-1")) == 1

    def test_clear(self, store, config, validator):
        """Test clearing resets history and summary."""
        store.publish("game-1", config, snap([270, 15, 15], [3, 1, 2], as_of=10))
        validator.clear()

        assert validator.reports() == []
        assert validator.summary.total_checks == 0
        assert validator.summary.match_rate == 1.0

    def test_history_size_must_be_positive(self):
        """Test a zero history size is rejected."""
        with pytest.raises(ValueError):
            ParityValidator(history_size=0)
