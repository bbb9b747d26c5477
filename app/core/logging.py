"""
Structured logging with JSON formatting and correlation ID support.

HTTP requests get their correlation ID from CorrelationIdMiddleware; every
sync cycle sets its own (``cycle-xxxxxxxx``) so all lines written while one
cycle runs can be grouped together.
"""
import logging
import json
import sys
import uuid
from datetime import datetime
from typing import Any
from contextvars import ContextVar

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

# LogRecord attributes that are not user-supplied "extra" fields
_RESERVED_ATTRS = frozenset({
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
    "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "created", "msecs", "relativeCreated", "thread", "threadName",
    "processName", "process", "message", "asctime", "taskName",
})

_NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    """
    One JSON object per log line.

    Fields: timestamp, level, logger, message, correlation_id, and when
    present, exception and extra (anything passed via ``extra=``).
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": correlation_id_var.get(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, default=str)


class ColoredFormatter(logging.Formatter):
    """Human-readable colored console output for development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        level_color = self.COLORS.get(record.levelname, "")
        correlation_id = correlation_id_var.get()

        base_msg = f"{level_color}[{record.levelname}]{self.RESET} {record.name}: {record.getMessage()}"
        if correlation_id:
            base_msg += f" | correlation_id={correlation_id}"
        if record.exc_info:
            base_msg += "\n" + self.formatException(record.exc_info)

        return base_msg


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    handler: logging.Handler | None = None,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Logging level name
        json_output: JSON lines when True, colored console output otherwise
        handler: Optional custom handler (defaults to stdout)
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(log_level)

    handler.setFormatter(JSONFormatter() if json_output else ColoredFormatter())
    root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_correlation_id(correlation_id: str) -> Any:
    """Set the correlation ID; returns the token for clear_correlation_id()."""
    return correlation_id_var.set(correlation_id)


def clear_correlation_id(token: Any) -> None:
    correlation_id_var.reset(token)


def new_cycle_id() -> str:
    """Short identifier used as the correlation ID of one sync cycle."""
    return f"cycle-{uuid.uuid4().hex[:8]}"
