"""
Normalized game representation produced by the feed adapters.

A NormalizedGame carries only current-state fields; it knows nothing about
versions or events. Construction validates identity fields so a record
without an id, a sport or both participants never reaches the orchestrator.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

from app.core.exceptions import PayloadValidationError
from app.models.enums import LifecycleState, Sport
from app.utils.timezone import utc_now


@dataclass(frozen=True)
class NormalizedGame:
    game_id: str
    sport: Sport
    team1: str
    team2: str
    score1: int = 0
    score2: int = 0
    status: LifecycleState = LifecycleState.PENDING
    current_time: str = ""
    observed_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if not self.game_id or not str(self.game_id).strip():
            raise PayloadValidationError("Game ID is required")
        if not isinstance(self.sport, Sport):
            raise PayloadValidationError(f"Unknown sport for game '{self.game_id}': {self.sport!r}")
        if not self.team1 or not self.team2:
            raise PayloadValidationError(f"Game '{self.game_id}' must have exactly 2 participants")
        if self.score1 < 0 or self.score2 < 0:
            raise PayloadValidationError(f"Score cannot be negative for game '{self.game_id}'")

    @property
    def score(self) -> Dict[str, int]:
        return {"team1": self.score1, "team2": self.score2}

    def summary(self) -> Dict[str, Any]:
        """Creation summary recorded in the ENTITY_CREATED payload."""
        return {
            "sport": self.sport.value,
            "team1": self.team1,
            "team2": self.team2,
            "status": self.status.value,
            "score": self.score,
            "current_time": self.current_time,
        }
