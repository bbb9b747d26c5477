"""Aggregate statistics route."""
from typing import Dict

from fastapi import APIRouter, Depends

from app.api.routes.games import get_query_service
from app.api.schemas import envelope
from app.services.query_service import GameQueryService

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("")
async def get_stats(service: GameQueryService = Depends(get_query_service)) -> Dict:
    """Game counts by status and sport, plus the total number of events."""
    return envelope(service.get_stats())
