"""
Repository layer for data access.

Usage:
    from app.repositories import GameSnapshotRepository, GameEventRepository
    from app.core.database import SessionLocal

    db = SessionLocal()
    games = GameSnapshotRepository(db)
    events = GameEventRepository(db)
    history = events.list_by_game("M1")
    db.close()
"""

from app.repositories.base import BaseRepository
from app.repositories.game_repository import GameSnapshotRepository
from app.repositories.event_repository import GameEventRepository

__all__ = [
    "BaseRepository",
    "GameSnapshotRepository",
    "GameEventRepository",
]
