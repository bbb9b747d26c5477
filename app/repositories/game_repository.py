"""
Game snapshot store.

Keyed create-or-overwrite of the current state of each game, plus the
filters and aggregates the read API needs.

Usage:
    repo = GameSnapshotRepository(db)
    snapshot = repo.get("M1")
    live = repo.list_live()
"""
from typing import Dict, List, Optional, Union

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError

from app.core.logging import get_logger
from app.models import GameSnapshot, LifecycleState, NormalizedGame, Sport
from app.repositories.base import BaseRepository
from app.utils.timezone import utc_now

logger = get_logger(__name__)


def _value(member: Union[str, Sport, LifecycleState]) -> str:
    return member.value if hasattr(member, "value") else str(member)


class GameSnapshotRepository(BaseRepository[GameSnapshot]):
    """Repository for the games (current state) table."""

    def __init__(self, db):
        super().__init__(GameSnapshot, db)

    # ========================================================================
    # Writes
    # ========================================================================

    def upsert(
        self,
        game: NormalizedGame,
        version: int,
        last_event_id: Optional[str] = None
    ) -> GameSnapshot:
        """
        Create or fully replace the snapshot of a game.

        Every state field is overwritten from ``game``; nothing is merged.
        A write carrying a lower version than the stored one is skipped, so a
        slow concurrent writer can never move a snapshot backwards.

        Args:
            game: Complete new state
            version: Highest event version appended for this state
            last_event_id: ID of that event

        Returns:
            The stored snapshot
        """
        for attempt in (1, 2):
            snapshot = self.get(game.game_id)
            if snapshot is not None and snapshot.version > version:
                logger.info(
                    f"Skipping stale snapshot write for {game.game_id}: "
                    f"stored v{snapshot.version} > v{version}"
                )
                return snapshot

            now = utc_now()
            if snapshot is None:
                snapshot = GameSnapshot(game_id=game.game_id, created_at=now)
                self.db.add(snapshot)

            snapshot.sport = game.sport.value
            snapshot.team1 = game.team1
            snapshot.team2 = game.team2
            snapshot.score1 = game.score1
            snapshot.score2 = game.score2
            snapshot.status = game.status.value
            snapshot.current_time = game.current_time
            snapshot.version = version
            snapshot.last_event_id = last_event_id
            snapshot.last_updated = now

            try:
                self.db.commit()
            except IntegrityError:
                # Another writer created the row between our read and insert
                self.db.rollback()
                if attempt == 2:
                    raise
                continue

            logger.debug(f"Snapshot saved: {game.game_id} ({game.sport.value}) v{version}")
            return snapshot

    def delete(self, game_id: str) -> bool:
        """Administrative removal of one snapshot. Never used by the sync path."""
        snapshot = self.get(game_id)
        if snapshot is None:
            return False
        self.db.delete(snapshot)
        self.db.commit()
        logger.info(f"Game snapshot deleted: {game_id}")
        return True

    def delete_all(self) -> int:
        """Administrative removal of every snapshot. Returns the number removed."""
        removed = self.query().delete()
        self.db.commit()
        logger.info(f"All game snapshots deleted ({removed})")
        return removed

    # ========================================================================
    # Reads
    # ========================================================================

    def get(self, game_id: str) -> Optional[GameSnapshot]:
        return self.find_by_id(game_id)

    def list_all(self) -> List[GameSnapshot]:
        return self.where(order_by=desc(GameSnapshot.last_updated))

    def list_by_sport(self, sport: Union[str, Sport]) -> List[GameSnapshot]:
        return self.where(
            GameSnapshot.sport == _value(sport),
            order_by=desc(GameSnapshot.last_updated)
        )

    def list_by_status(self, status: Union[str, LifecycleState]) -> List[GameSnapshot]:
        return self.where(
            GameSnapshot.status == _value(status),
            order_by=desc(GameSnapshot.last_updated)
        )

    def list_live(self) -> List[GameSnapshot]:
        """Active games ordered by sport then game ID."""
        return self.where(
            GameSnapshot.status == LifecycleState.ACTIVE.value,
            order_by=(GameSnapshot.sport, GameSnapshot.game_id)
        )

    def count_all(self) -> int:
        return self.count()

    def count_by_status(self) -> Dict[str, int]:
        return self.group_by_and_count("status")

    def count_by_sport(self) -> Dict[str, int]:
        return self.group_by_and_count("sport")
