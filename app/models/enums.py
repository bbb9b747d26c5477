"""Enumerations shared by the sync pipeline, the stores and the read API."""
from enum import Enum


class Sport(str, Enum):
    """Source domain of a game. One per upstream feed."""
    SOCCER = "SOCCER"
    TENNIS = "TENNIS"
    HOCKEY = "HOCKEY"


class LifecycleState(str, Enum):
    """Source-agnostic game status. No transition graph is enforced."""
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    CONCLUDED = "CONCLUDED"


class EventKind(str, Enum):
    """Kind of change recorded in the event log."""
    ENTITY_CREATED = "ENTITY_CREATED"
    ENTITY_ACTIVATED = "ENTITY_ACTIVATED"
    METRIC_UPDATED = "METRIC_UPDATED"
    STATE_CHANGED = "STATE_CHANGED"
    PROGRESS_UPDATED = "PROGRESS_UPDATED"


def parse_enum(enum_cls, value: str):
    """
    Case-insensitive lookup of an enum member by value.

    Raises:
        ValueError: if the value is not a member
    """
    if isinstance(value, enum_cls):
        return value
    return enum_cls(str(value).strip().upper())
