"""Integration tests for SyncOrchestrator.

Test Strategy:
1. New games bootstrap the right events and snapshot version
2. Unchanged state is a no-op (no events, no snapshot write)
3. Field diffs produce ordered events and a fully replaced snapshot
4. Versions stay gapless across cycles and version conflicts
5. One failing feed or game never stops the rest of the cycle
6. A lost database connection ends the cycle with StorageUnavailableError

Each test follows the pattern:
- Given: Fake feeds returning NormalizedGame objects over an in-memory database
- When: run_cycle() is called
- Then: Correct events, snapshots and cycle report
"""
import logging
import sys
from pathlib import Path

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

sys.path.insert(0, str(Path(__file__).parent.parent))
from conftest import make_game

from app.core.exceptions import StorageUnavailableError
from app.core.logging import correlation_id_var
from app.models import EventKind, LifecycleState, Sport
from app.services.sync.orchestrator import SyncOrchestrator


def kinds(events):
    return [e.event_type for e in events]


class TestSyncOrchestrator:
    """Integration tests for sync cycles."""

    @pytest.fixture
    def orchestrator(self, db_session: Session, soccer_feed, tennis_feed, hockey_feed):
        return SyncOrchestrator(db_session, adapters=[soccer_feed, tennis_feed, hockey_feed])

    # New games
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_new_pending_game_creates_single_event(self, orchestrator, soccer_feed, event_repo, snapshot_repo):
        """Should append only ENTITY_CREATED v1 for a new scoreless pending game."""
        soccer_feed.games = [make_game("X1")]

        await orchestrator.run_cycle()

        events = event_repo.list_by_game("X1")
        assert kinds(events) == ["ENTITY_CREATED"]
        assert events[0].version == 1
        assert events[0].source_api == "soccer-api"

        snapshot = snapshot_repo.get("X1")
        assert snapshot.version == 1
        assert snapshot.last_event_id == events[0].event_id
        assert snapshot.status == "PENDING"

    @pytest.mark.asyncio
    async def test_new_live_game_with_score(self, orchestrator, soccer_feed, event_repo, snapshot_repo):
        """Should append CREATED, ACTIVATED and METRIC_UPDATED (0-0 -> 1-0) in order."""
        soccer_feed.games = [make_game("X2", score1=1, status=LifecycleState.ACTIVE)]

        await orchestrator.run_cycle()

        events = event_repo.list_by_game("X2")
        assert kinds(events) == ["ENTITY_CREATED", "ENTITY_ACTIVATED", "METRIC_UPDATED"]
        assert [e.version for e in events] == [1, 2, 3]
        assert events[2].payload["previous_score"] == {"team1": 0, "team2": 0}
        assert events[2].payload["new_score"] == {"team1": 1, "team2": 0}
        assert snapshot_repo.get("X2").version == 3

    # Idempotence
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_identical_cycles_are_idempotent(self, orchestrator, soccer_feed, event_repo, monkeypatch):
        """Second cycle with identical data should append nothing and not write the snapshot."""
        soccer_feed.games = [make_game("M1", score1=1, status=LifecycleState.ACTIVE, current_time="5 min")]
        await orchestrator.run_cycle()
        assert event_repo.count_for_game("M1") == 3

        upserts = []
        real_upsert = orchestrator.snapshots.upsert
        monkeypatch.setattr(
            orchestrator.snapshots, "upsert",
            lambda *a, **kw: upserts.append(a) or real_upsert(*a, **kw)
        )

        report = await orchestrator.run_cycle()

        assert event_repo.count_for_game("M1") == 3
        assert upserts == []
        assert report.sources[0].unchanged == 1
        assert report.events_appended == 0

    # Field diffs
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_field_diff_completeness(self, orchestrator, soccer_feed, event_repo, snapshot_repo):
        """Score, state and progress change together: three ordered events, full snapshot replace."""
        soccer_feed.games = [make_game("M1", score1=1, status=LifecycleState.ACTIVE, current_time="10 min")]
        await orchestrator.run_cycle()
        before = event_repo.count_for_game("M1")

        soccer_feed.games = [
            make_game("M1", score1=2, score2=1, status=LifecycleState.CONCLUDED, current_time="90 min")
        ]
        report = await orchestrator.run_cycle()

        new_events = event_repo.list_by_game_since("M1", before)
        assert kinds(new_events) == ["STATE_CHANGED", "METRIC_UPDATED", "PROGRESS_UPDATED"]
        assert report.sources[0].updated == 1
        assert report.events_appended == 3

        snapshot = snapshot_repo.get("M1")
        assert (snapshot.score1, snapshot.score2) == (2, 1)
        assert snapshot.status == "CONCLUDED"
        assert snapshot.current_time == "90 min"
        assert snapshot.version == new_events[-1].version
        assert snapshot.last_event_id == new_events[-1].event_id

    @pytest.mark.asyncio
    async def test_regression_is_recorded(self, orchestrator, hockey_feed, event_repo, snapshot_repo):
        """A concluded game reverting to pending is an ordinary STATE_CHANGED."""
        hockey_feed.games = [
            make_game("H1", sport=Sport.HOCKEY, score1=3, status=LifecycleState.CONCLUDED, current_time="Period 3")
        ]
        await orchestrator.run_cycle()

        hockey_feed.games = [make_game("H1", sport=Sport.HOCKEY, current_time="Period 3")]
        await orchestrator.run_cycle()

        events = event_repo.list_by_game("H1")
        assert kinds(events)[-2:] == ["STATE_CHANGED", "METRIC_UPDATED"]
        assert events[-2].payload["previous_status"] == "CONCLUDED"
        assert events[-2].payload["new_status"] == "PENDING"
        assert snapshot_repo.get("H1").status == "PENDING"

    @pytest.mark.asyncio
    async def test_identity_is_fixed_at_creation(self, orchestrator, soccer_feed, hockey_feed, event_repo, snapshot_repo, caplog):
        """Sport and participants never change after creation; only the warning records the drift."""
        soccer_feed.games = [make_game("G1", status=LifecycleState.ACTIVE)]
        await orchestrator.run_cycle()

        soccer_feed.games = []
        hockey_feed.games = [
            make_game("G1", sport=Sport.HOCKEY, team1="Bruins", team2="Rangers", score1=2,
                      status=LifecycleState.ACTIVE)
        ]
        with caplog.at_level(logging.WARNING):
            await orchestrator.run_cycle()

        snapshot = snapshot_repo.get("G1")
        assert (snapshot.sport, snapshot.team1, snapshot.team2) == ("SOCCER", "Arsenal", "Chelsea")
        assert (snapshot.score1, snapshot.score2) == (2, 0)

        events = event_repo.list_by_game("G1")
        assert kinds(events) == ["ENTITY_CREATED", "ENTITY_ACTIVATED", "METRIC_UPDATED"]
        assert events[-1].payload["sport"] == "SOCCER"
        assert "identity changed upstream" in caplog.text

    @pytest.mark.asyncio
    async def test_identity_only_drift_appends_nothing(self, orchestrator, soccer_feed, event_repo, snapshot_repo):
        soccer_feed.games = [make_game("G2")]
        await orchestrator.run_cycle()

        soccer_feed.games = [make_game("G2", team1="Spurs")]
        report = await orchestrator.run_cycle()

        assert report.sources[0].unchanged == 1
        assert event_repo.count_for_game("G2") == 1
        assert snapshot_repo.get("G2").team1 == "Arsenal"

    # Versions
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_versions_gapless_across_cycles(self, orchestrator, soccer_feed, event_repo, snapshot_repo):
        """Versions should be exactly 1..N and the snapshot should sit at N."""
        for minute in range(0, 50, 10):
            soccer_feed.games = [
                make_game("M1", score1=minute // 20, status=LifecycleState.ACTIVE, current_time=f"{minute} min")
            ]
            await orchestrator.run_cycle()

        versions = [e.version for e in event_repo.list_by_game("M1")]
        assert versions == list(range(1, len(versions) + 1))
        assert snapshot_repo.get("M1").version == event_repo.current_version("M1")

    @pytest.mark.asyncio
    async def test_version_conflict_is_retried(self, orchestrator, soccer_feed, event_repo, snapshot_repo, monkeypatch):
        """A version claimed by a concurrent writer should be retried at the next free version."""
        # Another poller already appended v1 for this game
        event_repo.append("M1", EventKind.ENTITY_CREATED, {"sport": "SOCCER"}, source_api="soccer-api")

        real_current_version = orchestrator.events.current_version
        calls = []

        def stale_once(game_id):
            calls.append(game_id)
            version = real_current_version(game_id)
            return version - 1 if len(calls) == 1 else version

        monkeypatch.setattr(orchestrator.events, "current_version", stale_once)
        soccer_feed.games = [make_game("M1")]

        report = await orchestrator.run_cycle()

        assert report.failed == 0
        assert [e.version for e in event_repo.list_by_game("M1")] == [1, 2]
        assert snapshot_repo.get("M1").version == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_fail_only_that_game(self, db_session, soccer_feed, event_repo, snapshot_repo, monkeypatch):
        """Conflicts on every attempt skip the game; the rest of the feed is processed."""
        orchestrator = SyncOrchestrator(db_session, adapters=[soccer_feed], max_append_retries=2)
        event_repo.append("M1", EventKind.ENTITY_CREATED, {"sport": "SOCCER"})

        real_current_version = orchestrator.events.current_version
        monkeypatch.setattr(
            orchestrator.events, "current_version",
            lambda game_id: 0 if game_id == "M1" else real_current_version(game_id)
        )
        soccer_feed.games = [make_game("M1"), make_game("M2")]

        report = await orchestrator.run_cycle()

        assert report.sources[0].failed == 1
        assert report.sources[0].created == 1
        assert report.outcome == "partial"
        assert snapshot_repo.get("M1") is None
        assert snapshot_repo.get("M2").version == 1
        assert event_repo.count_for_game("M1") == 1

    # Failure isolation
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_failing_feed_does_not_block_others(self, orchestrator, soccer_feed, tennis_feed, hockey_feed, event_repo):
        """If one feed raises, the other two are still processed in the same cycle."""
        soccer_feed.error = RuntimeError("connection refused")
        tennis_feed.games = [make_game("T1", sport=Sport.TENNIS, team1="Nadal", team2="Federer")]
        hockey_feed.games = [make_game("H1", sport=Sport.HOCKEY, team1="Bruins", team2="Rangers")]

        report = await orchestrator.run_cycle()

        assert report.sources[0].fetch_failed is True
        assert report.outcome == "partial"
        assert event_repo.count_for_game("T1") == 1
        assert event_repo.count_for_game("H1") == 1

    @pytest.mark.asyncio
    async def test_failing_game_does_not_block_others(self, orchestrator, soccer_feed, event_repo, monkeypatch):
        """An error on one game is logged and skipped; later games are still processed."""
        real_append = orchestrator.events.append

        def flaky_append(game_id, *args, **kwargs):
            if game_id == "BAD":
                raise RuntimeError("boom")
            return real_append(game_id, *args, **kwargs)

        monkeypatch.setattr(orchestrator.events, "append", flaky_append)
        soccer_feed.games = [make_game("BAD"), make_game("M2")]

        report = await orchestrator.run_cycle()

        assert report.sources[0].failed == 1
        assert event_repo.count_for_game("M2") == 1

    @pytest.mark.asyncio
    async def test_storage_outage_propagates(self, orchestrator, soccer_feed, monkeypatch):
        """A lost database connection should end the cycle with StorageUnavailableError."""
        def db_down(game_id):
            raise OperationalError("SELECT 1", {}, Exception("server closed the connection"))

        monkeypatch.setattr(orchestrator.snapshots, "get", db_down)
        soccer_feed.games = [make_game("M1")]

        with pytest.raises(StorageUnavailableError):
            await orchestrator.run_cycle()

    @pytest.mark.asyncio
    async def test_correlation_id_reset_when_fetch_setup_fails(self, db_session):
        """The cycle id is cleared from the logging context even if the fetch fan-out raises."""
        class MisconfiguredFeed:
            source_tag = "broken-api"

            def fetch_games(self):
                raise RuntimeError("adapter not configured")

        orchestrator = SyncOrchestrator(db_session, adapters=[MisconfiguredFeed()])

        with pytest.raises(RuntimeError):
            await orchestrator.run_cycle()

        assert correlation_id_var.get() == ""

    # Reporting
    # ─────────────────────────────────────────────────────────────

    @pytest.mark.asyncio
    async def test_cycle_report(self, orchestrator, soccer_feed, tennis_feed):
        soccer_feed.games = [make_game("M1"), make_game("M2", score1=1, status=LifecycleState.ACTIVE)]
        tennis_feed.games = [make_game("T1", sport=Sport.TENNIS)]

        report = await orchestrator.run_cycle()
        data = report.to_dict()

        assert report.outcome == "success"
        assert data["cycle_id"].startswith("cycle-")
        assert data["events_appended"] == 1 + 3 + 1
        assert [s["source"] for s in data["sources"]] == ["soccer-api", "tennis-api", "hockey-api"]
        assert data["sources"][0]["fetched"] == 2
        assert data["sources"][0]["created"] == 2
        assert data["sources"][2]["fetched"] == 0
