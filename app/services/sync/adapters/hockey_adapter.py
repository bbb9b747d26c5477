"""Hockey feed adapter.

Wire format (GET /api/games):
    {"games": [{"id": "H1", "teams": ["...", "..."],
                "score": {"team1": 2, "team2": 1}, "period": 2,
                "status": "LIVE", "events": [...]}]}

Statuses: SCHEDULED, LIVE, FINAL. Progress is rendered as "Period 2".
"""
from datetime import datetime
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field

from app.models import LifecycleState, NormalizedGame, Sport
from app.services.sync.adapters.base import BaseFeedAdapter


class HockeyScorePayload(BaseModel):
    team1: int = Field(0, ge=0)
    team2: int = Field(0, ge=0)


class HockeyGamePayload(BaseModel):
    """One game as sent by the hockey feed."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    teams: Tuple[str, str]
    score: HockeyScorePayload = Field(default_factory=HockeyScorePayload)
    period: int = Field(1, ge=0)
    status: str = ""


class HockeyAdapter(BaseFeedAdapter):
    """Adapter for the hockey live-score feed."""

    sport = Sport.HOCKEY
    source_tag = "hockey-api"
    record_model = HockeyGamePayload
    STATUS_MAP = {
        "SCHEDULED": LifecycleState.PENDING,
        "LIVE": LifecycleState.ACTIVE,
        "FINAL": LifecycleState.CONCLUDED,
    }

    def to_game(self, record: HockeyGamePayload, observed_at: datetime) -> NormalizedGame:
        team1, team2 = record.teams
        return NormalizedGame(
            game_id=record.id,
            sport=self.sport,
            team1=team1,
            team2=team2,
            score1=record.score.team1,
            score2=record.score.team2,
            status=self.map_status(record.status),
            current_time=f"Period {record.period}",
            observed_at=observed_at,
        )
