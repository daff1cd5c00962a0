"""
Tests for the Dashboard API.

============================================================
PURPOSE
============================================================
1. Health and game listing
2. Prediction, view and leave-estimate endpoints
3. Error mapping (404, 422, 400)
4. Parity reports
5. WebSocket tick stream

============================================================
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from core.clock import MockClock
from core.exceptions import InvalidSnapshotError
from dashboard import create_app
from flow_engine import EngineConfig, FlowEngine, GameConfig, GameSnapshot
from onchain_adapters import InMemorySnapshotSource
from parity_validation import ParityValidator
from simulation import PredictionService
from snapshot_store import SnapshotStore


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def config():
    """Create the reference two-bucket configuration."""
    return GameConfig(entry_fee=100, spill_rate=1, bucket_count=2, max_players=10, mint_decimals=0)


@pytest.fixture
def store(config):
    """Create a store with one loaded game."""
    store = SnapshotStore()
    store.publish("game-1", config, GameSnapshot.from_lists([300, 0, 0], [3, 1, 2], as_of=0))
    return store


@pytest.fixture
def service(store):
    """Create a prediction service on a mock clock at t=10."""
    return PredictionService(
        store,
        engine=FlowEngine(EngineConfig.for_testing()),
        clock=MockClock(initial_time=10),
    )


@pytest.fixture
def parity(store):
    """Create a parity validator attached to the store."""
    validator = ParityValidator(engine=FlowEngine(EngineConfig.for_testing()))
    validator.attach(store)
    return validator


@pytest.fixture
def client(service, parity):
    """Create a test client for the full application."""
    app = create_app(service, source=InMemorySnapshotSource(), parity=parity)
    with TestClient(app) as client:
        yield client


# ============================================================
# HEALTH & LISTING
# ============================================================

class TestHealth:
    """Tests for health and listing endpoints."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["docs"] == "/docs"

    def test_health(self, client):
        """Test health reports loaded games and source status."""
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["games_loaded"] == 1
        assert body["source"]["status"] == "unknown"
        assert body["active_game"] is None

    def test_list_games(self, client):
        """Test loaded games are listed with their totals."""
        response = client.get("/games")

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data) == 1
        assert data[0]["game_id"] == "game-1"
        assert data[0]["total_players"] == 3
        assert data[0]["total_balance"] == 300


# ============================================================
# PREDICTIONS
# ============================================================

class TestPredictionEndpoints:
    """Tests for prediction, view and leave estimates."""

    def test_prediction_uses_clock(self, client):
        """Test the service clock supplies now when omitted."""
        response = client.get("/games/game-1/prediction")

        assert response.status_code == 200
        body = response.json()
        assert body["now"] == 10
        assert body["balances"] == [270, 15, 15]
        assert body["directions"] == [-1, 1, 1]
        assert body["truncation_loss"] == 0

    def test_prediction_explicit_now(self, client):
        """Test an explicit now is honored."""
        response = client.get("/games/game-1/prediction", params={"now": 1})

        assert response.status_code == 200
        assert response.json()["balances"] == [298, 1, 1]

    def test_prediction_stale_now(self, client):
        """Test a query before the snapshot returns the snapshot, flagged stale."""
        response = client.get("/games/game-1/prediction", params={"now": -5})

        body = response.json()
        assert body["stale"] is True
        assert body["balances"] == [300, 0, 0]

    def test_unknown_game_is_404(self, client):
        response = client.get("/games/missing/prediction")
        assert response.status_code == 404

    def test_invalid_snapshot_is_422(self, client, service):
        """Test an invalid snapshot maps to 422."""
        error = InvalidSnapshotError("bad snapshot", game_id="game-1")
        with patch.object(service, "current_prediction", side_effect=error):
            response = client.get("/games/game-1/prediction")

        assert response.status_code == 422
        assert response.json()["detail"] == "bad snapshot"

    def test_view(self, client):
        """Test the derived view is returned."""
        response = client.get("/games/game-1/view")

        assert response.status_code == 200
        body = response.json()
        assert body["game_id"] == "game-1"
        assert [b["fuel"] for b in body["buckets"]] == [270, 15, 15]
        assert body["buckets"][0]["direction_glyph"] == "▼"
        assert body["total_occupancy"] == 3

    def test_leave_estimate(self, client):
        """Test a leave estimate from the predicted balances."""
        response = client.get("/games/game-1/leave-estimate", params={"bucket": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["gross_winnings"] == 7
        assert body["is_loss"] is True

    def test_leave_estimate_empty_bucket_is_400(self, client, service, config, store):
        """Test leaving a bucket with no players is a bad request."""
        store.publish("game-1", config, GameSnapshot.from_lists([300, 0, 0], [3, 3, 0], as_of=0))

        response = client.get("/games/game-1/leave-estimate", params={"bucket": 2})

        assert response.status_code == 400

    def test_leave_estimate_holding_bucket_rejected(self, client):
        """Test the holding bucket fails query validation."""
        response = client.get("/games/game-1/leave-estimate", params={"bucket": 0})
        assert response.status_code == 422


# ============================================================
# PARITY
# ============================================================

class TestParityEndpoint:
    """Tests for parity reports."""

    def test_parity_reports(self, client, store, config):
        """Test reports for a confirmed update are listed."""
        store.publish("game-1", config, GameSnapshot.from_lists([270, 15, 15], [3, 1, 2], as_of=10))

        response = client.get("/games/game-1/parity")

        assert response.status_code == 200
        body = response.json()
        assert body["summary"]["total_checks"] == 1
        assert body["reports"][0]["is_match"] is True

    def test_parity_disabled_is_404(self, service):
        """Test the parity route is absent without a validator."""
        with TestClient(create_app(service)) as client:
            assert client.get("/games/game-1/parity").status_code == 404


# ============================================================
# STREAM
# ============================================================

class TestStream:
    """Tests for the WebSocket tick stream."""

    def test_initial_prediction_then_ticks(self, client, service):
        """Test the stream sends the current prediction then each tick."""
        with client.websocket_connect("/games/game-1/stream") as ws:
            first = ws.receive_json()
            assert first["event"] == "tick"
            assert first["data"]["prediction"]["now"] == 10

            service.publish_tick(service.current_prediction("game-1", now=20))
            second = ws.receive_json()
            assert second["data"]["prediction"]["now"] == 20

    def test_other_games_filtered(self, client, service, store, config):
        """Test ticks for other games are not streamed."""
        store.publish("game-2", config, GameSnapshot.from_lists([100, 0, 0], [1, 1, 0], as_of=0))

        with client.websocket_connect("/games/game-1/stream") as ws:
            ws.receive_json()
            service.publish_tick(service.current_prediction("game-2", now=5))
            service.publish_tick(service.current_prediction("game-1", now=5))
            message = ws.receive_json()
            assert message["data"]["game_id"] == "game-1"

    def test_unloaded_game_waits(self, client):
        """Test an unloaded game is announced as waiting."""
        with client.websocket_connect("/games/missing/stream") as ws:
            assert ws.receive_json()["event"] == "waiting"

    def test_ping(self, client):
        """Test the stream answers pings."""
        with client.websocket_connect("/games/game-1/stream") as ws:
            ws.receive_json()
            ws.send_text("ping")
            assert ws.receive_json() == {"event": "pong"}

    def test_disconnect_unsubscribes(self, client, service):
        """Test closing the stream removes its tick callback."""
        with client.websocket_connect("/games/game-1/stream") as ws:
            ws.receive_json()
        # Ticks after disconnect must not fail
        service.publish_tick(service.current_prediction("game-1", now=30))
