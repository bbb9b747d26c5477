"""Game read routes.

Provides endpoints for:
- All games, live games, games by sport or status
- One game and its versioned event history
"""
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.schemas import envelope
from app.core.database import get_db
from app.services.query_service import GameQueryService

router = APIRouter(prefix="/games", tags=["games"])


def get_query_service(db: Session = Depends(get_db)) -> GameQueryService:
    """Dependency to get a query service bound to the request session."""
    return GameQueryService(db)


@router.get("")
async def list_games(service: GameQueryService = Depends(get_query_service)) -> Dict:
    """All tracked games, most recently updated first."""
    return envelope(service.list_games())


@router.get("/live")
async def list_live_games(service: GameQueryService = Depends(get_query_service)) -> Dict:
    """Games currently in progress, ordered by sport then game ID."""
    return envelope(service.list_live_games())


@router.get("/sport/{sport}")
async def list_games_by_sport(
    sport: str,
    service: GameQueryService = Depends(get_query_service)
) -> Dict:
    """Games of one sport (soccer, tennis, hockey; case-insensitive)."""
    return envelope(service.list_games_by_sport(sport))


@router.get("/status/{status}")
async def list_games_by_status(
    status: str,
    service: GameQueryService = Depends(get_query_service)
) -> Dict:
    """Games in one lifecycle state (pending, active, concluded)."""
    return envelope(service.list_games_by_status(status))


@router.get("/{game_id}")
async def get_game(game_id: str, service: GameQueryService = Depends(get_query_service)) -> Dict:
    return envelope(service.get_game(game_id))


@router.get("/{game_id}/events")
async def get_game_events(
    game_id: str,
    after_version: Optional[int] = Query(None, ge=0, description="Only events after this version"),
    service: GameQueryService = Depends(get_query_service)
) -> Dict:
    """
    Event history of a game, version ascending.

    Returns:
        {game, events, total_events}
    """
    return envelope(service.get_game_history(game_id, after_version=after_version))
