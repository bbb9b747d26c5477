"""
Circuit breakers for the upstream feeds.

Uses the pybreaker library. One breaker per feed (keyed by source tag) so a
feed that keeps failing is skipped quickly for a while instead of eating a
full timeout on every cycle, without affecting the other feeds.

Circuit Breaker States:
- closed: requests pass through normally
- open: requests fail immediately (after fail_max consecutive failures)
- half-open: one request allowed to test if the feed recovered
"""
from typing import Dict, Optional

from pybreaker import CircuitBreaker, CircuitBreakerError

from app.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_FAIL_MAX = 5
DEFAULT_RESET_TIMEOUT = 30

_breakers: Dict[str, CircuitBreaker] = {}


def get_feed_breaker(
    source_tag: str,
    fail_max: Optional[int] = None,
    reset_timeout: Optional[int] = None,
) -> CircuitBreaker:
    """
    Get (or lazily create) the shared breaker for a feed.

    Args:
        source_tag: Feed identifier, e.g. "soccer-api"
        fail_max: Failures before opening (only used on creation)
        reset_timeout: Seconds before a half-open probe (only used on creation)
    """
    breaker = _breakers.get(source_tag)
    if breaker is None:
        breaker = CircuitBreaker(
            fail_max=fail_max or DEFAULT_FAIL_MAX,
            reset_timeout=reset_timeout or DEFAULT_RESET_TIMEOUT,
            name=source_tag,
        )
        _breakers[source_tag] = breaker
    return breaker


def get_all_breaker_states() -> Dict[str, str]:
    """Mapping of feed source tag to breaker state name."""
    return {name: breaker.current_state for name, breaker in _breakers.items()}


def reset_breaker(source_tag: str) -> bool:
    """
    Manually close a feed breaker.

    Returns:
        False when no breaker exists for the source
    """
    breaker = _breakers.get(source_tag)
    if breaker is None:
        return False
    breaker.close()
    logger.warning(f"Circuit breaker '{source_tag}' manually reset to CLOSED state")
    return True


__all__ = [
    "CircuitBreaker",
    "CircuitBreakerError",
    "get_feed_breaker",
    "get_all_breaker_states",
    "reset_breaker",
]
