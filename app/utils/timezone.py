"""
Timezone utilities.

All timestamps are stored as naive UTC datetimes and rendered as ISO 8601
with a trailing ``Z`` in API responses.
"""
from datetime import datetime, timezone
from typing import Optional

UTC = timezone.utc


def utc_now() -> datetime:
    """Current time as a naive UTC datetime (the storage convention)."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Render a stored UTC datetime as ISO 8601 with a Z suffix."""
    if value is None:
        return None
    return to_naive_utc(value).isoformat(timespec="milliseconds") + "Z"
