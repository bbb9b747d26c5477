"""Sync API routes.

Provides endpoints for:
- Scheduler control (start/stop/status)
- Manual sync trigger
- Feed circuit breaker state
"""
from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.schemas import envelope
from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import InvalidQueryError
from app.core.logging import get_logger
from app.core.scheduler import get_scheduler, start_scheduler
from app.services.sync.circuit_breaker import get_all_breaker_states, reset_breaker
from app.services.sync.orchestrator import SyncOrchestrator

logger = get_logger(__name__)

router = APIRouter(prefix="/sync", tags=["sync"])


def get_orchestrator(db: Session = Depends(get_db)) -> SyncOrchestrator:
    """Dependency to get sync orchestrator instance."""
    return SyncOrchestrator(db)


def _scheduler_status() -> Dict:
    scheduler = get_scheduler()
    if scheduler is None:
        return {
            "running": False,
            "interval_ms": settings.POLL_INTERVAL_MS,
            "last_report": None,
        }
    return scheduler.status()


@router.get("/status")
async def get_sync_status() -> Dict:
    """
    Scheduler state, last cycle report and feed circuit breakers.
    """
    return envelope({
        "scheduler": _scheduler_status(),
        "circuit_breakers": get_all_breaker_states(),
    })


@router.post("/trigger")
async def trigger_sync(orchestrator: SyncOrchestrator = Depends(get_orchestrator)) -> Dict:
    """
    Run one sync cycle now and return its report.

    Goes through the scheduler when one is running so its status reflects
    the manual cycle too.
    """
    scheduler = get_scheduler()
    if scheduler is not None:
        report = await scheduler.trigger_now()
    else:
        report = await orchestrator.run_cycle()
    return envelope(report.to_dict())


@router.post("/scheduler/start")
async def start_sync_scheduler() -> Dict:
    scheduler = await start_scheduler()
    return envelope(scheduler.status())


@router.post("/scheduler/stop")
async def stop_sync_scheduler() -> Dict:
    scheduler = get_scheduler()
    if scheduler is not None:
        await scheduler.stop()
    else:
        logger.info("Stop requested but no scheduler was created")
    return envelope(_scheduler_status())


@router.post("/circuit-breakers/{source_tag}/reset")
async def reset_feed_breaker(source_tag: str) -> Dict:
    """Manually close the circuit breaker of one feed, e.g. soccer-api."""
    if not reset_breaker(source_tag):
        raise InvalidQueryError(f"No circuit breaker for feed '{source_tag}'")
    return envelope(get_all_breaker_states())
