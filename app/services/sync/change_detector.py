"""
Pure change detection between a stored snapshot and a freshly fetched game.

No I/O happens here: the orchestrator decides what to persist. The returned
list is already in append order, which is what gives events of one cycle
their relative versions.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List

from app.models import EventKind, GameSnapshot, LifecycleState, NormalizedGame


@dataclass(frozen=True)
class DetectedChange:
    """One event to append: its kind and its payload."""
    kind: EventKind
    payload: Dict[str, Any] = field(default_factory=dict)


def detect_new_game_changes(game: NormalizedGame) -> List[DetectedChange]:
    """
    Events for a game seen for the first time.

    Always ENTITY_CREATED; then ENTITY_ACTIVATED if it is already live, then
    METRIC_UPDATED from 0-0 if the score is not 0-0.
    """
    sport = game.sport.value
    changes = [DetectedChange(EventKind.ENTITY_CREATED, game.summary())]

    if game.status == LifecycleState.ACTIVE:
        changes.append(DetectedChange(
            EventKind.ENTITY_ACTIVATED,
            {"sport": sport, "status": LifecycleState.ACTIVE.value},
        ))

    if game.score1 != 0 or game.score2 != 0:
        changes.append(DetectedChange(
            EventKind.METRIC_UPDATED,
            {
                "sport": sport,
                "previous_score": {"team1": 0, "team2": 0},
                "new_score": game.score,
            },
        ))

    return changes


def detect_changes(snapshot: GameSnapshot, game: NormalizedGame) -> List[DetectedChange]:
    """
    Field-by-field diff of an existing snapshot against the fetched state.

    Order is fixed: STATE_CHANGED, METRIC_UPDATED, PROGRESS_UPDATED. Any
    transition is accepted, including a concluded game going back to pending
    or a score resetting to 0-0.

    Returns:
        Changes in append order, empty when nothing differs
    """
    sport = game.sport.value
    changes = []

    if snapshot.status != game.status.value:
        changes.append(DetectedChange(
            EventKind.STATE_CHANGED,
            {"sport": sport, "previous_status": snapshot.status, "new_status": game.status.value},
        ))

    if snapshot.score1 != game.score1 or snapshot.score2 != game.score2:
        changes.append(DetectedChange(
            EventKind.METRIC_UPDATED,
            {
                "sport": sport,
                "previous_score": {"team1": snapshot.score1, "team2": snapshot.score2},
                "new_score": game.score,
            },
        ))

    if (snapshot.current_time or "") != game.current_time:
        changes.append(DetectedChange(
            EventKind.PROGRESS_UPDATED,
            {"sport": sport, "previous_time": snapshot.current_time, "new_time": game.current_time},
        ))

    return changes
