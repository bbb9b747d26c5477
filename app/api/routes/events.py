"""Event log read routes (across all games)."""
from typing import Dict

from fastapi import APIRouter, Depends, Query

from app.api.routes.games import get_query_service
from app.api.schemas import envelope
from app.services.query_service import MAX_EVENT_LIMIT, GameQueryService

router = APIRouter(prefix="/events", tags=["events"])


@router.get("/recent")
async def recent_events(
    limit: int = Query(50, ge=1, le=MAX_EVENT_LIMIT),
    service: GameQueryService = Depends(get_query_service)
) -> Dict:
    """Most recently recorded events, newest first."""
    return envelope(service.recent_events(limit=limit))


@router.get("/type/{event_type}")
async def events_by_type(
    event_type: str,
    limit: int = Query(100, ge=1, le=MAX_EVENT_LIMIT),
    service: GameQueryService = Depends(get_query_service)
) -> Dict:
    """Most recent events of one kind, e.g. METRIC_UPDATED."""
    return envelope(service.events_by_type(event_type, limit=limit))
