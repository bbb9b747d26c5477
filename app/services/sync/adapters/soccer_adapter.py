"""Soccer feed adapter.

Wire format (GET /api/matches):
    {"matches": [{"matchId": "M1", "homeTeam": "...", "awayTeam": "...",
                  "score": {"home": 1, "away": 0}, "minute": 45,
                  "status": "LIVE", "events": [...]}]}

Statuses: SCHEDULED, LIVE, FINISHED. Progress is rendered as "45 min".
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models import LifecycleState, NormalizedGame, Sport
from app.services.sync.adapters.base import BaseFeedAdapter


class SoccerScorePayload(BaseModel):
    home: int = Field(0, ge=0)
    away: int = Field(0, ge=0)


class SoccerMatchPayload(BaseModel):
    """One match as sent by the soccer feed."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    match_id: str = Field(..., alias="matchId", min_length=1)
    home_team: str = Field(..., alias="homeTeam", min_length=1)
    away_team: str = Field(..., alias="awayTeam", min_length=1)
    score: SoccerScorePayload = Field(default_factory=SoccerScorePayload)
    minute: int = Field(0, ge=0)
    status: str = ""


class SoccerAdapter(BaseFeedAdapter):
    """Adapter for the soccer live-score feed."""

    sport = Sport.SOCCER
    source_tag = "soccer-api"
    endpoint_path = "/api/matches"
    envelope_key = "matches"
    record_model = SoccerMatchPayload
    STATUS_MAP = {
        "SCHEDULED": LifecycleState.PENDING,
        "LIVE": LifecycleState.ACTIVE,
        "FINISHED": LifecycleState.CONCLUDED,
    }

    def to_game(self, record: SoccerMatchPayload, observed_at: datetime) -> NormalizedGame:
        return NormalizedGame(
            game_id=record.match_id,
            sport=self.sport,
            team1=record.home_team,
            team2=record.away_team,
            score1=record.score.home,
            score2=record.score.away,
            status=self.map_status(record.status),
            current_time=f"{record.minute} min",
            observed_at=observed_at,
        )
