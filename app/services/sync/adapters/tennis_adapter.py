"""Tennis feed adapter.

Wire format (GET /api/games):
    {"games": [{"gameId": "T1", "player1": "...", "player2": "...",
                "setScore": [{"p1": 6, "p2": 4}, {"p1": 2, "p2": 3}],
                "status": "IN_PROGRESS", "events": [...]}]}

Statuses: SCHEDULED, IN_PROGRESS, COMPLETED.

The score of a tennis game is the number of sets won. A set counts as won
when the leader has at least 6 games with a 2-game margin, or won the
tie-break 7-6. Sets still in progress are not counted.
"""
from datetime import datetime
from typing import List, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from app.models import LifecycleState, NormalizedGame, Sport
from app.services.sync.adapters.base import BaseFeedAdapter


class SetScorePayload(BaseModel):
    p1: int = Field(0, ge=0)
    p2: int = Field(0, ge=0)


class TennisGamePayload(BaseModel):
    """One match as sent by the tennis feed."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    game_id: str = Field(..., alias="gameId", min_length=1)
    player1: str = Field(..., min_length=1)
    player2: str = Field(..., min_length=1)
    set_score: List[SetScorePayload] = Field(default_factory=list, alias="setScore")
    status: str = ""


def is_set_complete(p1: int, p2: int) -> bool:
    """
    True when somebody has won the set.

    6-4, 7-5, 8-6 and 7-6 (tie-break) are complete; 5-3, 6-5 and 6-6 are not.
    """
    if max(p1, p2) >= 6 and abs(p1 - p2) >= 2:
        return True
    return (p1, p2) in ((7, 6), (6, 7))


def count_sets_won(sets: Sequence[SetScorePayload]) -> Tuple[int, int]:
    player1 = player2 = 0
    for s in sets:
        if not is_set_complete(s.p1, s.p2):
            continue
        if s.p1 > s.p2:
            player1 += 1
        elif s.p2 > s.p1:
            player2 += 1
    return player1, player2


def format_progress(sets: Sequence[SetScorePayload]) -> str:
    """
    Human readable match progress.

    Examples:
        "Starting"                  no set data yet
        "Set 1: 4-2"                first set in progress
        "Sets: 1-0"                 last reported set is finished
        "Sets: 1-1, Set 3: 3-2"     later set in progress
    """
    if not sets:
        return "Starting"

    won1, won2 = count_sets_won(sets)
    current = sets[-1]
    set_number = len(sets)

    if is_set_complete(current.p1, current.p2):
        return f"Sets: {won1}-{won2}"
    if set_number > 1:
        return f"Sets: {won1}-{won2}, Set {set_number}: {current.p1}-{current.p2}"
    return f"Set {set_number}: {current.p1}-{current.p2}"


class TennisAdapter(BaseFeedAdapter):
    """Adapter for the tennis live-score feed."""

    sport = Sport.TENNIS
    source_tag = "tennis-api"
    record_model = TennisGamePayload
    STATUS_MAP = {
        "SCHEDULED": LifecycleState.PENDING,
        "IN_PROGRESS": LifecycleState.ACTIVE,
        "COMPLETED": LifecycleState.CONCLUDED,
    }

    def to_game(self, record: TennisGamePayload, observed_at: datetime) -> NormalizedGame:
        won1, won2 = count_sets_won(record.set_score)
        return NormalizedGame(
            game_id=record.game_id,
            sport=self.sport,
            team1=record.player1,
            team2=record.player2,
            score1=won1,
            score2=won2,
            status=self.map_status(record.status),
            current_time=format_progress(record.set_score),
            observed_at=observed_at,
        )
