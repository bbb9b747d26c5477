"""Sync orchestrator: one polling cycle over every live-score feed.

A cycle:
1. Fetches all feeds concurrently (a failing feed never blocks the others)
2. For each source, in configured order, processes its games sequentially:
   - new game: ENTITY_CREATED (+ ENTITY_ACTIVATED, + METRIC_UPDATED from 0-0)
   - known game: STATE_CHANGED, METRIC_UPDATED, PROGRESS_UPDATED for what differs
   - nothing differs: no event, no snapshot write
3. Appends each event at a freshly read version, retrying on version conflicts,
   then writes the snapshot at the highest version appended

A failing game is logged and skipped. Only a lost database connection ends
the cycle early (StorageUnavailableError).
"""
import asyncio
import time
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    AppendRetriesExhaustedError, StorageUnavailableError, VersionConflictError
)
from app.core.logging import clear_correlation_id, get_logger, new_cycle_id, set_correlation_id
from app.core.metrics import (
    event_version_conflicts_total,
    game_events_appended_total,
    sync_cycle_duration_seconds,
    sync_cycles_total,
)
from app.models import GameEvent, GameSnapshot, NormalizedGame, Sport
from app.repositories import GameEventRepository, GameSnapshotRepository
from app.services.sync.adapters import BaseFeedAdapter, get_feed_adapters
from app.services.sync.change_detector import (
    DetectedChange, detect_changes, detect_new_game_changes
)
from app.utils.timezone import to_iso, utc_now

logger = get_logger(__name__)


@dataclass
class SourceReport:
    """What happened to one feed during a cycle."""
    source: str
    fetched: int = 0
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    failed: int = 0
    events_appended: int = 0
    fetch_failed: bool = False


@dataclass
class CycleReport:
    cycle_id: str
    started_at: datetime
    sources: List[SourceReport] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def events_appended(self) -> int:
        return sum(s.events_appended for s in self.sources)

    @property
    def failed(self) -> int:
        return sum(s.failed for s in self.sources)

    @property
    def outcome(self) -> str:
        """success, or partial when a feed raised or a game could not be processed."""
        if any(s.fetch_failed or s.failed for s in self.sources):
            return "partial"
        return "success"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cycle_id": self.cycle_id,
            "started_at": to_iso(self.started_at),
            "duration_ms": self.duration_ms,
            "outcome": self.outcome,
            "events_appended": self.events_appended,
            "failed": self.failed,
            "sources": [asdict(s) for s in self.sources],
        }


class SyncOrchestrator:
    """
    Runs sync cycles against the snapshot and event stores.

    Holds no source-specific logic: every feed is a BaseFeedAdapter.
    """

    def __init__(
        self,
        db: Session,
        adapters: Optional[Sequence[BaseFeedAdapter]] = None,
        max_append_retries: Optional[int] = None,
    ):
        """
        Args:
            db: SQLAlchemy database session
            adapters: Feeds to poll, in processing order (defaults to the configured three)
            max_append_retries: Append attempts per event before giving up on a game
        """
        self.db = db
        self.adapters = list(adapters) if adapters is not None else get_feed_adapters()
        self.max_append_retries = max_append_retries or settings.APPEND_MAX_RETRIES
        self.snapshots = GameSnapshotRepository(db)
        self.events = GameEventRepository(db)

    async def run_cycle(self) -> CycleReport:
        """
        Run one full fetch, detect, append, upsert cycle.

        Returns:
            CycleReport with per-source counters

        Raises:
            StorageUnavailableError: if the database cannot be reached
        """
        cycle_id = new_cycle_id()
        token = set_correlation_id(cycle_id)
        report = CycleReport(cycle_id=cycle_id, started_at=utc_now())
        start = time.perf_counter()
        logger.info(f"Starting sync cycle {cycle_id} ({len(self.adapters)} sources)")

        try:
            results = await asyncio.gather(
                *(adapter.fetch_games() for adapter in self.adapters),
                return_exceptions=True,
            )

            for adapter, result in zip(self.adapters, results):
                source = SourceReport(source=adapter.source_tag)
                report.sources.append(source)

                if isinstance(result, Exception):
                    source.fetch_failed = True
                    logger.error(
                        f"Fetch from {adapter.source_tag} failed: {result}", exc_info=result
                    )
                    continue
                if isinstance(result, BaseException):
                    raise result

                source.fetched = len(result)
                logger.info(f"Fetched {len(result)} games from {adapter.source_tag}")
                for game in result:
                    self._process_game_safely(game, adapter.source_tag, source)

            elapsed = time.perf_counter() - start
            report.duration_ms = int(elapsed * 1000)
            sync_cycle_duration_seconds.observe(elapsed)

            sync_cycles_total.labels(outcome=report.outcome).inc()
            logger.info(
                f"Sync cycle {cycle_id} finished in {report.duration_ms}ms: "
                f"{report.events_appended} events, {report.failed} failed games, "
                f"outcome={report.outcome}"
            )
            return report
        except StorageUnavailableError:
            sync_cycles_total.labels(outcome="failed").inc()
            raise
        finally:
            clear_correlation_id(token)

    # ========================================================================
    # Per-game processing
    # ========================================================================

    def _process_game_safely(self, game: NormalizedGame, source_tag: str, source: SourceReport) -> None:
        try:
            outcome, appended = self.process_game(game, source_tag)
        except (OperationalError, InterfaceError) as e:
            self._rollback()
            raise StorageUnavailableError(
                f"Database unavailable while processing game {game.game_id}: {e}"
            ) from e
        except Exception as e:
            self._rollback()
            source.failed += 1
            logger.error(f"Error processing game {game.game_id} from {source_tag}: {e}", exc_info=True)
            return

        source.events_appended += appended
        if outcome == "created":
            source.created += 1
        elif outcome == "updated":
            source.updated += 1
        else:
            source.unchanged += 1

    def process_game(self, game: NormalizedGame, source_tag: str) -> Tuple[str, int]:
        """
        Detect and persist the changes of one game.

        Events are committed before the snapshot so a reader never sees a
        snapshot ahead of the event log.

        Returns:
            ("created" | "updated" | "unchanged", number of events appended)
        """
        snapshot = self.snapshots.get(game.game_id)

        if snapshot is None:
            outcome = "created"
            changes = detect_new_game_changes(game)
        else:
            outcome = "updated"
            game = self._keep_identity(snapshot, game)
            changes = detect_changes(snapshot, game)
            if not changes:
                return "unchanged", 0

        last_event = None
        for change in changes:
            last_event = self._append_with_retry(game, change, source_tag)

        self.snapshots.upsert(game, version=last_event.version, last_event_id=last_event.event_id)
        return outcome, len(changes)

    def _append_with_retry(self, game: NormalizedGame, change: DetectedChange, source_tag: str) -> GameEvent:
        for attempt in range(1, self.max_append_retries + 1):
            try:
                event = self.events.append(
                    game.game_id,
                    change.kind,
                    change.payload,
                    occurred_at=game.observed_at,
                    source_api=source_tag,
                )
            except VersionConflictError as e:
                event_version_conflicts_total.inc()
                logger.warning(f"{e} (attempt {attempt}/{self.max_append_retries})")
                continue

            game_events_appended_total.labels(event_type=change.kind.value, source=source_tag).inc()
            return event

        raise AppendRetriesExhaustedError(game.game_id, self.max_append_retries)

    def _keep_identity(self, snapshot: GameSnapshot, game: NormalizedGame) -> NormalizedGame:
        """Sport and participants are fixed at creation; later feed values are ignored."""
        if (snapshot.sport, snapshot.team1, snapshot.team2) == (game.sport.value, game.team1, game.team2):
            return game

        logger.warning(
            f"Game {game.game_id} identity changed upstream, keeping stored identity: "
            f"{snapshot.sport} {snapshot.team1} v {snapshot.team2}, ignoring "
            f"{game.sport.value} {game.team1} v {game.team2}"
        )
        return replace(game, sport=Sport(snapshot.sport), team1=snapshot.team1, team2=snapshot.team2)

    def _rollback(self) -> None:
        try:
            self.db.rollback()
        except SQLAlchemyError as e:
            logger.warning(f"Rollback failed: {e}")
