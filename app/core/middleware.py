"""
Request correlation ID middleware.

Reads X-Correlation-ID from the request (or generates one), exposes it on
``request.state.correlation_id``, puts it in the logging context for the
duration of the request and echoes it back in the response headers.
"""
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.logging import set_correlation_id, clear_correlation_id, get_logger

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Attach a correlation ID to every request and its log lines."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        token = set_correlation_id(correlation_id)

        try:
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = correlation_id
            logger.debug(
                f"{request.method} {request.url.path} -> {response.status_code}",
                extra={"method": request.method, "path": request.url.path, "status": response.status_code},
            )
            return response
        finally:
            clear_correlation_id(token)
