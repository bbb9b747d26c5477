"""
Read-side facade over the snapshot and event stores.

Pure reads for the HTTP API. Filter values arriving as path strings are
parsed here (case-insensitive) and rejected with InvalidQueryError; unknown
game IDs raise GameNotFoundError.
"""
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import GameNotFoundError, InvalidQueryError
from app.models import EventKind, GameEvent, GameSnapshot, LifecycleState, Sport, parse_enum
from app.repositories import GameEventRepository, GameSnapshotRepository
from app.utils.timezone import to_iso

MAX_EVENT_LIMIT = 500


def serialize_game(game: GameSnapshot) -> Dict[str, Any]:
    return {
        "game_id": game.game_id,
        "sport": game.sport,
        "team1": game.team1,
        "team2": game.team2,
        "score": {"team1": game.score1, "team2": game.score2},
        "status": game.status,
        "current_time": game.current_time,
        "version": game.version,
        "last_event_id": game.last_event_id,
        "last_updated": to_iso(game.last_updated),
        "created_at": to_iso(game.created_at),
    }


def serialize_event(event: GameEvent) -> Dict[str, Any]:
    return {
        "event_id": event.event_id,
        "game_id": event.game_id,
        "event_type": event.event_type,
        "version": event.version,
        "occurred_at": to_iso(event.occurred_at),
        "recorded_at": to_iso(event.recorded_at),
        "payload": event.payload,
        "source_api": event.source_api,
    }


def _parse(enum_cls, value: str, label: str):
    try:
        return parse_enum(enum_cls, value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidQueryError(f"Invalid {label} '{value}'. Expected one of: {allowed}") from None


class GameQueryService:
    """Query facade used by the read API."""

    def __init__(self, db: Session):
        self.snapshots = GameSnapshotRepository(db)
        self.events = GameEventRepository(db)

    # ========================================================================
    # Games
    # ========================================================================

    def list_games(self) -> List[Dict[str, Any]]:
        return [serialize_game(g) for g in self.snapshots.list_all()]

    def list_live_games(self) -> List[Dict[str, Any]]:
        return [serialize_game(g) for g in self.snapshots.list_live()]

    def list_games_by_sport(self, sport: str) -> List[Dict[str, Any]]:
        parsed = _parse(Sport, sport, "sport")
        return [serialize_game(g) for g in self.snapshots.list_by_sport(parsed)]

    def list_games_by_status(self, status: str) -> List[Dict[str, Any]]:
        parsed = _parse(LifecycleState, status, "status")
        return [serialize_game(g) for g in self.snapshots.list_by_status(parsed)]

    def get_game(self, game_id: str) -> Dict[str, Any]:
        return serialize_game(self._require_game(game_id))

    def get_game_history(self, game_id: str, after_version: Optional[int] = None) -> Dict[str, Any]:
        """
        Snapshot plus event history of one game, version ascending.

        Args:
            game_id: Game to look up
            after_version: Only return events with a greater version

        Raises:
            GameNotFoundError: if no snapshot exists
        """
        game = self._require_game(game_id)
        if after_version is None:
            events = self.events.list_by_game(game_id)
        else:
            events = self.events.list_by_game_since(game_id, after_version)

        return {
            "game": serialize_game(game),
            "events": [serialize_event(e) for e in events],
            "total_events": self.events.count_for_game(game_id),
        }

    def _require_game(self, game_id: str) -> GameSnapshot:
        game = self.snapshots.get(game_id)
        if game is None:
            raise GameNotFoundError(game_id)
        return game

    # ========================================================================
    # Events
    # ========================================================================

    def recent_events(self, limit: int = 50) -> List[Dict[str, Any]]:
        return [serialize_event(e) for e in self.events.list_recent(limit=min(limit, MAX_EVENT_LIMIT))]

    def events_by_type(self, event_type: str, limit: int = 100) -> List[Dict[str, Any]]:
        kind = _parse(EventKind, event_type, "event type")
        events = self.events.list_by_type(kind, limit=min(limit, MAX_EVENT_LIMIT))
        return [serialize_event(e) for e in events]

    # ========================================================================
    # Stats
    # ========================================================================

    def get_stats(self) -> Dict[str, Any]:
        """
        Aggregate counts across all games.

        total_events sums the per-game counts, one count query per game.
        """
        games = self.snapshots.list_all()
        total_events = sum(self.events.count_for_game(g.game_id) for g in games)

        by_status = {state.value: 0 for state in LifecycleState}
        by_status.update(self.snapshots.count_by_status())
        by_sport = {sport.value: 0 for sport in Sport}
        by_sport.update(self.snapshots.count_by_sport())

        return {
            "total_games": self.snapshots.count_all(),
            "by_status": by_status,
            "by_sport": by_sport,
            "total_events": total_events,
        }
