"""
Tests for the Derived View Model.

============================================================
PURPOSE
============================================================
1. Fuel clamping and ratios
2. Player share and its undefined case
3. Direction passthrough
4. Token formatting and unit conversion
5. Leave estimates

============================================================
"""

from decimal import Decimal

import pytest

from flow_engine import (
    BucketFlow,
    BucketId,
    BucketRole,
    EngineConfig,
    FlowEngine,
    FlowPrediction,
    GameConfig,
    GameSnapshot,
)
from view_model import (
    build_galaxy_view,
    clamp_fuel,
    estimate_leave,
    format_compact,
    format_tokens,
    player_share,
    to_display_units,
)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def config():
    """Create the reference two-bucket configuration."""
    return GameConfig(entry_fee=100, spill_rate=1, bucket_count=2, max_players=10)


@pytest.fixture
def prediction(config):
    """Create the reference prediction at t=10."""
    snapshot = GameSnapshot.from_lists([300, 0, 0], [3, 1, 2], as_of=0)
    return FlowEngine(EngineConfig.for_testing()).predict(config, snapshot, now=10)


# ============================================================
# GALAXY VIEW
# ============================================================

class TestGalaxyView:
    """Tests for the prediction to view mapping."""

    def test_buckets_and_totals(self, config, prediction):
        """Test totals and per-bucket values."""
        view = build_galaxy_view("game-1", config, prediction)

        assert [b.fuel for b in view.buckets] == [270, 15, 15]
        assert view.total_balance == 300
        assert view.total_players == 3
        assert view.total_occupancy == 3
        assert view.max_fuel == 1000
        assert view.holding.role == BucketRole.HOLDING
        assert len(view.playable) == 2

    def test_ratios(self, config, prediction):
        """Test fuel and occupancy normalization."""
        view = build_galaxy_view("game-1", config, prediction)

        assert view.buckets[0].fuel_ratio == pytest.approx(0.27)
        assert view.buckets[0].occupancy_ratio == 0.0
        assert view.buckets[1].occupancy_ratio == pytest.approx(1 / 3)
        assert view.buckets[2].occupancy_ratio == pytest.approx(2 / 3)

    def test_player_share(self, config, prediction):
        """Test share is balance floor-divided by occupancy."""
        view = build_galaxy_view("game-1", config, prediction)

        assert view.buckets[1].player_share == 15
        assert view.buckets[2].player_share == 7

    def test_out_of_bounds_share_and_total_use_balance(self):
        """Test only fuel is clamped; share and total keep the raw balance."""
        config = GameConfig(entry_fee=10, spill_rate=1, bucket_count=2, max_players=2)
        snapshot = GameSnapshot.from_lists([0, 50, 0], [2, 2, 0], as_of=0)
        prediction = FlowEngine(EngineConfig.for_testing()).predict(config, snapshot, now=0)

        view = build_galaxy_view("game-1", config, prediction)

        assert view.buckets[1].fuel == 20
        assert view.buckets[1].balance == 50
        assert view.buckets[1].player_share == 25
        assert view.total_balance == 50

    def test_direction_is_passed_through(self, config, prediction):
        """Test the view copies engine directions and adds glyphs."""
        view = build_galaxy_view("game-1", config, prediction)

        assert [b.direction for b in view.buckets] == prediction.directions
        assert view.buckets[0].direction_glyph == "▼"
        assert view.buckets[1].direction_glyph == "▲"

    def test_out_of_bounds_balance_is_clamped_for_display(self, config):
        """Test raw values outside [0, max_fuel] render clamped."""
        flows = (
            BucketFlow(BucketId.holding(), 0, 0, 0),
            BucketFlow(BucketId.playable(1), 1, 5000, 5000, out_of_bounds=True),
            BucketFlow(BucketId.playable(2), 0, 0, 0),
        )
        raw = FlowPrediction(as_of=0, now=0, elapsed_seconds=0, buckets=flows, max_fuel=1000)

        view = build_galaxy_view("game-1", config, raw)

        assert view.buckets[1].balance == 5000
        assert view.buckets[1].fuel == 1000
        assert view.buckets[1].fuel_ratio == 1.0

    def test_empty_bucket_share_is_none(self, config):
        """Test an unoccupied bucket has no player share."""
        snapshot = GameSnapshot.from_lists([0, 0, 40], [0, 0, 0], as_of=0)
        prediction = FlowEngine(EngineConfig.for_testing()).predict(config, snapshot, now=0)

        view = build_galaxy_view("game-1", config, prediction)

        assert view.buckets[2].player_share is None
        assert view.buckets[2].player_share_display is None
        assert view.buckets[2].occupancy_ratio == 0.0

    def test_to_dict(self, config, prediction):
        """Test view serialization."""
        data = build_galaxy_view("game-1", config, prediction).to_dict()
        assert data["game_id"] == "game-1"
        assert data["buckets"][1]["direction"] == 1
        assert data["buckets"][0]["role"] == "holding"


class TestHelpers:
    """Tests for view helper functions."""

    @pytest.mark.parametrize("balance,expected", [(-5, 0), (0, 0), (500, 500), (1500, 1000)])
    def test_clamp_fuel(self, balance, expected):
        """Test fuel clamping."""
        assert clamp_fuel(balance, 1000) == expected

    def test_player_share_undefined_for_empty(self):
        """Test zero occupancy gives None rather than dividing."""
        assert player_share(100, 0) is None
        assert player_share(100, 3) == 33


# ============================================================
# FORMATTING
# ============================================================

class TestFormatting:
    """Tests for unit conversion and compact notation."""

    def test_to_display_units(self):
        """Test decimals scaling keeps exact digits."""
        assert to_display_units(1_500_000_000, 9) == Decimal("1.5")
        assert to_display_units(42) == Decimal(42)

    @pytest.mark.parametrize("amount,expected", [
        (999, "999"),
        (1234, "1.23K"),
        (4_500_000, "4.5M"),
        (999_600, "1M"),
        (7_000_000_000, "7B"),
    ])
    def test_compact(self, amount, expected):
        """Test compact notation with three significant digits."""
        assert format_tokens(amount) == expected

    def test_decimals_applied(self):
        """Test mint decimals are applied before formatting."""
        assert format_tokens(1_234_567, decimals=6) == "1.23"

    def test_dust_renders_as_approx_zero(self):
        """Test amounts below 0.001 display units render as ~0."""
        assert format_tokens(500, decimals=6) == "~0"
        assert format_tokens(0) == "~0"

    def test_small_fraction(self):
        """Test fractions keep three significant digits."""
        assert format_tokens(12345, decimals=7) == "0.00123"

    def test_short(self):
        """Test short form uses two significant digits."""
        assert format_tokens(1234, short=True) == "1.2K"

    def test_format_compact_negative(self):
        """Test negative values keep their sign."""
        assert format_compact(Decimal(-2500)) == "-2.5K"


# ============================================================
# LEAVE ESTIMATE
# ============================================================

class TestLeaveEstimate:
    """Tests for leave payout estimates."""

    def test_share_of_bucket(self, config):
        """Test a player takes balance // occupancy of their bucket."""
        estimate = estimate_leave(config, [100, 250, 50], [3, 2, 1], bucket_index=1)

        assert estimate.gross_winnings == 125
        assert estimate.net_winnings == 125
        assert estimate.is_last_player is False
        assert estimate.is_loss is False

    def test_last_player_takes_everything(self, config):
        """Test the last player takes every bucket."""
        estimate = estimate_leave(config, [20, 0, 70], [1, 0, 1], bucket_index=2)

        assert estimate.is_last_player is True
        assert estimate.gross_winnings == 90
        assert estimate.is_loss is True

    def test_burn_penalty_deducted(self, config):
        """Test the burn penalty reduces net winnings."""
        estimate = estimate_leave(config, [0, 300, 0], [2, 2, 0], bucket_index=1, burn_penalty=30)

        assert estimate.burn == 30
        assert estimate.net_winnings == 120

    def test_burn_capped_at_winnings(self, config):
        """Test the burn never exceeds the winnings."""
        estimate = estimate_leave(config, [0, 10, 0], [2, 2, 0], bucket_index=1, burn_penalty=30)

        assert estimate.burn == 5
        assert estimate.net_winnings == 0

    def test_holding_bucket_rejected(self, config):
        """Test a player cannot leave from the holding bucket."""
        with pytest.raises(ValueError):
            estimate_leave(config, [0, 0, 0], [1, 1, 0], bucket_index=0)

    def test_empty_bucket_rejected(self, config):
        """Test leaving an empty bucket is rejected."""
        with pytest.raises(ValueError):
            estimate_leave(config, [0, 0, 0], [1, 1, 0], bucket_index=2)

    def test_to_dict(self, config):
        """Test estimate serialization."""
        data = estimate_leave(config, [100, 250, 50], [3, 2, 1], bucket_index=1).to_dict()
        assert data["is_loss"] is False
        assert data["net_display"] == "125"
