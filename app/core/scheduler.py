"""
Recurring live-score sync.

Runs SyncOrchestrator.run_cycle() on a fixed interval (POLL_INTERVAL_MS,
default 5 seconds). Manual triggers go through the same code path.

Only a database outage stops the scheduler: the cycle in progress is
allowed to finish, the scheduler shuts down and the process supervisor is
expected to restart the service.

Scheduler: APScheduler (AsyncIOScheduler, lives on the running event loop)
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Sequence

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import SessionLocal
from app.core.exceptions import StorageUnavailableError
from app.core.logging import get_logger
from app.core.metrics import scheduler_running, update_circuit_breaker_metrics
from app.services.sync.adapters import BaseFeedAdapter, get_feed_adapters
from app.services.sync.orchestrator import CycleReport, SyncOrchestrator
from app.utils.timezone import to_iso

logger = get_logger(__name__)

SYNC_JOB_ID = "game_sync"


class SyncScheduler:
    """
    Owns the polling lifecycle (stopped/running) of one process.

    start() and stop() are the only mutators of the running state.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        adapters: Optional[Sequence[BaseFeedAdapter]] = None,
        interval_ms: Optional[int] = None,
        run_immediately: Optional[bool] = None,
    ):
        self.session_factory = session_factory
        self.adapters = list(adapters) if adapters is not None else get_feed_adapters()
        self.interval_ms = interval_ms or settings.POLL_INTERVAL_MS
        self.run_immediately = settings.SYNC_ON_STARTUP if run_immediately is None else run_immediately

        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False
        self.cycles_run = 0
        self.last_report: Optional[CycleReport] = None
        self.last_error: Optional[str] = None

    async def start(self):
        """Start polling. No-op if already running."""
        if self.running:
            logger.warning("Sync scheduler already running")
            return

        logger.info(f"Starting sync scheduler (every {self.interval_ms}ms, {len(self.adapters)} feeds)")

        self.scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={
                'coalesce': True,  # Combine missed runs into one
                'max_instances': 1,  # Timer-driven cycles never overlap
                'misfire_grace_time': 30
            }
        )

        job_kwargs: Dict[str, Any] = {}
        if self.run_immediately:
            job_kwargs["next_run_time"] = datetime.now(timezone.utc)

        self.scheduler.add_job(
            self._sync_job,
            trigger=IntervalTrigger(seconds=self.interval_ms / 1000),
            id=SYNC_JOB_ID,
            name="Sync live games",
            **job_kwargs
        )

        self.scheduler.start()
        self.running = True
        scheduler_running.set(1)
        logger.info("Sync scheduler started")

    async def stop(self):
        """Stop polling. No-op if not running."""
        self._shutdown()

    def _shutdown(self) -> None:
        if not self.running:
            return

        logger.info("Stopping sync scheduler...")
        self.scheduler.shutdown(wait=False)
        self.running = False
        scheduler_running.set(0)
        logger.info("Sync scheduler stopped")

    async def trigger_now(self) -> CycleReport:
        """
        Run one cycle immediately, outside the timer.

        May overlap a timer-driven cycle; the event log's version check
        keeps both consistent.

        Raises:
            StorageUnavailableError: if the database cannot be reached
        """
        logger.info("Manual sync triggered")
        try:
            return await self._run_cycle()
        except StorageUnavailableError as e:
            self._halt(e)
            raise

    def status(self) -> Dict[str, Any]:
        next_run = None
        if self.running and self.scheduler is not None:
            job = self.scheduler.get_job(SYNC_JOB_ID)
            if job is not None and job.next_run_time is not None:
                next_run = to_iso(job.next_run_time)

        return {
            "running": self.running,
            "interval_ms": self.interval_ms,
            "feeds": [a.source_tag for a in self.adapters],
            "next_run_time": next_run,
            "cycles_run": self.cycles_run,
            "last_report": self.last_report.to_dict() if self.last_report else None,
            "last_error": self.last_error,
        }

    async def _sync_job(self):
        try:
            await self._run_cycle()
        except StorageUnavailableError as e:
            self._halt(e)
        except Exception as e:
            logger.error(f"Sync cycle failed: {e}", exc_info=True)

    async def _run_cycle(self) -> CycleReport:
        db = self.session_factory()
        try:
            report = await SyncOrchestrator(db, self.adapters).run_cycle()
            self.cycles_run += 1
            self.last_report = report
            self.last_error = None
            return report
        finally:
            db.close()
            update_circuit_breaker_metrics()

    def _halt(self, error: StorageUnavailableError) -> None:
        self.last_error = str(error)
        logger.critical(f"Storage unavailable, stopping sync scheduler: {error}")
        if self.running:
            # Deferred so the job that hit the outage completes before shutdown;
            # a failing shutdown surfaces through the loop exception handler
            asyncio.get_running_loop().call_soon(self._shutdown)


# Global scheduler instance
_scheduler: Optional[SyncScheduler] = None


async def start_scheduler(**kwargs) -> SyncScheduler:
    """Start the global scheduler."""
    global _scheduler
    if _scheduler is None:
        _scheduler = SyncScheduler(**kwargs)
    await _scheduler.start()
    return _scheduler


async def stop_scheduler():
    """Stop the global scheduler."""
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None


def get_scheduler() -> Optional[SyncScheduler]:
    """Get the global scheduler instance."""
    return _scheduler
