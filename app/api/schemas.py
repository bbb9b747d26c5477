"""
Response envelope shared by every API endpoint.

    {"success": true,  "data": {...},        "timestamp": "2026-01-01T12:00:00.000Z"}
    {"success": false, "error": "message",   "timestamp": "2026-01-01T12:00:00.000Z"}
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from app.utils.timezone import to_iso, utc_now


class ApiResponse(BaseModel):
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    timestamp: str = Field(default_factory=lambda: to_iso(utc_now()))


def envelope(data: Any = None, error: Optional[str] = None) -> Dict[str, Any]:
    """Build a success envelope, or an error envelope when ``error`` is given."""
    body = ApiResponse(success=error is None, data=data, error=error).model_dump()
    body.pop("data" if error is not None else "error")
    return body
