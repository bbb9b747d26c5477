"""
HTTP endpoint integration tests for the sports tracker API.

These tests verify that FastAPI endpoints:
- Wrap every response in the {success, data|error, timestamp} envelope
- Return correct HTTP status codes (404 unknown game, 400 bad filter)
- Pass reads through to the snapshot and event stores

Uses FastAPI TestClient for in-memory HTTP testing.
"""
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "tests"))
from conftest import FakeFeedAdapter, make_game

from app.core.exceptions import StorageUnavailableError
from app.models import EventKind, LifecycleState, Sport


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def sample_games(snapshot_repo, event_repo):
    """Two soccer games (one live), one tennis, one hockey, with event history for M1."""
    base = datetime(2026, 3, 1, 15, 0)
    event_repo.append("M1", EventKind.ENTITY_CREATED, {"sport": "SOCCER"}, occurred_at=base, source_api="soccer-api")
    event_repo.append("M1", EventKind.ENTITY_ACTIVATED, {"sport": "SOCCER", "status": "ACTIVE"},
                      occurred_at=base + timedelta(minutes=1), source_api="soccer-api")
    last = event_repo.append(
        "M1", EventKind.METRIC_UPDATED,
        {"sport": "SOCCER", "previous_score": {"team1": 0, "team2": 0}, "new_score": {"team1": 1, "team2": 0}},
        occurred_at=base + timedelta(minutes=2), source_api="soccer-api"
    )
    snapshot_repo.upsert(
        make_game("M1", score1=1, status=LifecycleState.ACTIVE, current_time="23 min"),
        version=3, last_event_id=last.event_id
    )

    event_repo.append("M2", EventKind.ENTITY_CREATED, {"sport": "SOCCER"}, occurred_at=base)
    snapshot_repo.upsert(make_game("M2", team1="Liverpool", team2="Everton"), version=1)

    event_repo.append("T1", EventKind.ENTITY_CREATED, {"sport": "TENNIS"}, occurred_at=base)
    snapshot_repo.upsert(
        make_game("T1", sport=Sport.TENNIS, team1="Nadal", team2="Federer", status=LifecycleState.CONCLUDED,
                  current_time="Sets: 2-1"),
        version=1
    )

    event_repo.append("H1", EventKind.ENTITY_CREATED, {"sport": "HOCKEY"}, occurred_at=base)
    snapshot_repo.upsert(
        make_game("H1", sport=Sport.HOCKEY, team1="Bruins", team2="Rangers", status=LifecycleState.ACTIVE,
                  current_time="Period 1"),
        version=1
    )


def assert_success(response):
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert "error" not in body
    assert body["timestamp"].endswith("Z")
    return body["data"]


def assert_error(response, status_code):
    assert response.status_code == status_code
    body = response.json()
    assert body["success"] is False
    assert "data" not in body
    return body["error"]


# =============================================================================
# SERVICE ENDPOINTS
# =============================================================================

class TestServiceEndpoints:

    def test_root(self, test_client):
        response = test_client.get("/")

        assert response.status_code == 200
        assert response.json()["sports"] == ["soccer", "tennis", "hockey"]

    def test_health(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_detailed_health(self, test_client):
        response = test_client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["components"]["database"]["status"] == "connected"

    def test_correlation_id_is_echoed(self, test_client):
        response = test_client.get("/health", headers={"X-Correlation-ID": "req-123"})

        assert response.headers["X-Correlation-ID"] == "req-123"

    def test_unknown_path_is_enveloped(self, test_client):
        error = assert_error(test_client.get("/api/nope"), 404)

        assert error == "Not Found"

    def test_default_rate_limit_applies_to_api_routes(self, test_client):
        """RATE_LIMIT_DEFAULT (120/minute) covers routes without their own limit."""
        statuses = [test_client.get("/api/stats").status_code for _ in range(120)]

        assert statuses == [200] * 120
        error = assert_error(test_client.get("/api/stats"), 429)
        assert error.startswith("Rate limit exceeded")


# =============================================================================
# GAME ENDPOINTS
# =============================================================================

class TestGameEndpoints:

    def test_list_games(self, test_client, sample_games):
        data = assert_success(test_client.get("/api/games"))

        assert {g["game_id"] for g in data} == {"M1", "M2", "T1", "H1"}

    def test_game_shape(self, test_client, sample_games):
        game = assert_success(test_client.get("/api/games/M1"))

        assert game["sport"] == "SOCCER"
        assert game["team1"] == "Arsenal"
        assert game["score"] == {"team1": 1, "team2": 0}
        assert game["status"] == "ACTIVE"
        assert game["current_time"] == "23 min"
        assert game["version"] == 3
        assert game["last_updated"].endswith("Z")

    def test_list_live_games(self, test_client, sample_games):
        data = assert_success(test_client.get("/api/games/live"))

        assert [g["game_id"] for g in data] == ["H1", "M1"]

    def test_empty_database(self, test_client):
        assert assert_success(test_client.get("/api/games")) == []

    @pytest.mark.parametrize("sport", ["soccer", "SOCCER", "Soccer"])
    def test_games_by_sport_is_case_insensitive(self, test_client, sample_games, sport):
        data = assert_success(test_client.get(f"/api/games/sport/{sport}"))

        assert {g["game_id"] for g in data} == {"M1", "M2"}

    def test_unknown_sport_is_rejected(self, test_client, sample_games):
        error = assert_error(test_client.get("/api/games/sport/cricket"), 400)

        assert "cricket" in error

    def test_games_by_status(self, test_client, sample_games):
        data = assert_success(test_client.get("/api/games/status/concluded"))

        assert [g["game_id"] for g in data] == ["T1"]

    def test_unknown_game_is_404(self, test_client, sample_games):
        error = assert_error(test_client.get("/api/games/NOPE"), 404)

        assert error == "Game with ID 'NOPE' not found"

    def test_game_history(self, test_client, sample_games):
        data = assert_success(test_client.get("/api/games/M1/events"))

        assert data["game"]["game_id"] == "M1"
        assert data["total_events"] == 3
        assert [e["version"] for e in data["events"]] == [1, 2, 3]
        assert data["events"][2]["event_type"] == "METRIC_UPDATED"
        assert data["events"][2]["payload"]["new_score"] == {"team1": 1, "team2": 0}
        assert data["events"][2]["source_api"] == "soccer-api"

    def test_game_history_after_version(self, test_client, sample_games):
        data = assert_success(test_client.get("/api/games/M1/events", params={"after_version": 1}))

        assert [e["version"] for e in data["events"]] == [2, 3]
        assert data["total_events"] == 3

    def test_history_of_unknown_game_is_404(self, test_client):
        assert_error(test_client.get("/api/games/NOPE/events"), 404)

    def test_invalid_query_parameter_is_enveloped(self, test_client, sample_games):
        error = assert_error(test_client.get("/api/games/M1/events", params={"after_version": -1}), 400)

        assert error.startswith("Invalid request: after_version")


# =============================================================================
# EVENT AND STATS ENDPOINTS
# =============================================================================

class TestEventEndpoints:

    def test_recent_events(self, test_client, sample_games):
        data = assert_success(test_client.get("/api/events/recent", params={"limit": 2}))

        assert len(data) == 2

    def test_events_by_type(self, test_client, sample_games):
        data = assert_success(test_client.get("/api/events/type/entity_created"))

        assert {e["game_id"] for e in data} == {"M1", "M2", "T1", "H1"}

    def test_unknown_event_type_is_rejected(self, test_client):
        assert_error(test_client.get("/api/events/type/GOAL_SCORED"), 400)

    def test_stats(self, test_client, sample_games):
        data = assert_success(test_client.get("/api/stats"))

        assert data["total_games"] == 4
        assert data["total_events"] == 6
        assert data["by_status"] == {"PENDING": 1, "ACTIVE": 2, "CONCLUDED": 1}
        assert data["by_sport"] == {"SOCCER": 2, "TENNIS": 1, "HOCKEY": 1}


# =============================================================================
# SYNC ENDPOINTS
# =============================================================================

class TestSyncEndpoints:

    @pytest.fixture
    def feed(self, db_session):
        """Route manual syncs through a fake soccer feed."""
        from app.main import app
        from app.api.routes.sync import get_orchestrator
        from app.services.sync.orchestrator import SyncOrchestrator

        feed = FakeFeedAdapter("soccer-api")
        app.dependency_overrides[get_orchestrator] = lambda: SyncOrchestrator(db_session, adapters=[feed])
        return feed

    def test_status_without_scheduler(self, test_client):
        data = assert_success(test_client.get("/api/sync/status"))

        assert data["scheduler"]["running"] is False
        assert "circuit_breakers" in data

    def test_manual_trigger(self, test_client, feed):
        feed.games = [make_game("M9", score1=2, status=LifecycleState.ACTIVE, current_time="40 min")]

        report = assert_success(test_client.post("/api/sync/trigger"))

        assert report["events_appended"] == 3
        assert report["sources"][0]["created"] == 1
        game = assert_success(test_client.get("/api/games/M9"))
        assert game["version"] == 3

    def test_manual_trigger_storage_outage_is_503(self, test_client, feed):
        async def broken_cycle():
            raise StorageUnavailableError("connection refused")

        from app.main import app
        from app.api.routes.sync import get_orchestrator

        orchestrator = app.dependency_overrides[get_orchestrator]()
        orchestrator.run_cycle = broken_cycle
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator

        error = assert_error(test_client.post("/api/sync/trigger"), 503)

        assert "connection refused" not in error

    def test_reset_unknown_breaker_is_rejected(self, test_client):
        assert_error(test_client.post("/api/sync/circuit-breakers/cricket-api/reset"), 400)
