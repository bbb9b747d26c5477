"""
Game event log.

Append-only store of versioned game changes. ``append`` is the only
mutation: it reads the current max version for the game, inserts the
event at max + 1 and commits. If another writer claimed that version
first, the (game_id, version) unique constraint rejects the insert and
VersionConflictError is raised so the caller can retry with a freshly
computed version.
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import desc, func
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import VersionConflictError
from app.core.logging import get_logger
from app.models import EventKind, GameEvent
from app.repositories.base import BaseRepository
from app.utils.timezone import to_naive_utc, utc_now

logger = get_logger(__name__)


class GameEventRepository(BaseRepository[GameEvent]):
    """Repository for the game_events table."""

    def __init__(self, db):
        super().__init__(GameEvent, db)

    def current_version(self, game_id: str) -> int:
        """Highest version recorded for the game, 0 when it has no events."""
        return self.db.query(func.max(GameEvent.version)).filter(
            GameEvent.game_id == game_id
        ).scalar() or 0

    def append(
        self,
        game_id: str,
        event_type: Union[str, EventKind],
        payload: Dict[str, Any],
        occurred_at: Optional[datetime] = None,
        source_api: Optional[str] = None,
    ) -> GameEvent:
        """
        Append one event at the next version for the game.

        The version is read fresh on every call, never cached.

        Raises:
            VersionConflictError: if the computed version was taken concurrently
        """
        event_type = event_type.value if isinstance(event_type, EventKind) else event_type
        next_version = self.current_version(game_id) + 1
        now = utc_now()

        event = GameEvent(
            event_id=str(uuid.uuid4()),
            game_id=game_id,
            event_type=event_type,
            version=next_version,
            occurred_at=to_naive_utc(occurred_at) if occurred_at else now,
            recorded_at=now,
            payload=payload,
            source_api=source_api,
        )
        self.db.add(event)

        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise VersionConflictError(game_id, next_version) from e

        logger.info(f"Event saved: {event_type} for {game_id} (v{next_version})")
        return event

    # ========================================================================
    # Reads
    # ========================================================================

    def list_by_game(self, game_id: str) -> List[GameEvent]:
        """All events of a game, version ascending."""
        return self.where(GameEvent.game_id == game_id, order_by=GameEvent.version)

    def list_by_game_since(self, game_id: str, after_version: int) -> List[GameEvent]:
        """Events of a game with version strictly greater than ``after_version``."""
        return self.where(
            GameEvent.game_id == game_id,
            GameEvent.version > after_version,
            order_by=GameEvent.version
        )

    def list_by_type(self, event_type: Union[str, EventKind], limit: int = 100) -> List[GameEvent]:
        """Most recent events of one kind across all games."""
        event_type = event_type.value if isinstance(event_type, EventKind) else event_type
        return self.where(
            GameEvent.event_type == event_type,
            order_by=(desc(GameEvent.occurred_at), desc(GameEvent.recorded_at)),
            limit=limit
        )

    def list_recent(self, limit: int = 50) -> List[GameEvent]:
        """Most recently recorded events across all games."""
        return self.where(
            order_by=(desc(GameEvent.recorded_at), desc(GameEvent.version)),
            limit=limit
        )

    def count_for_game(self, game_id: str) -> int:
        return self.count(GameEvent.game_id == game_id)

    def count_all(self) -> int:
        return self.count()
