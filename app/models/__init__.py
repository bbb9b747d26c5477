"""
Models for the sports tracker.

Usage:
    from app.models import GameSnapshot, GameEvent, NormalizedGame
    from app.models import Sport, LifecycleState, EventKind
"""
from app.models.models import Base, GameSnapshot, GameEvent
from app.models.enums import Sport, LifecycleState, EventKind, parse_enum
from app.models.domain import NormalizedGame

__all__ = [
    "Base",
    "GameSnapshot",
    "GameEvent",
    "NormalizedGame",
    "Sport",
    "LifecycleState",
    "EventKind",
    "parse_enum",
]
