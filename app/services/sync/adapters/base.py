"""
Base feed adapter for the upstream live-score sources.

Every adapter turns one source-specific JSON payload into a list of
NormalizedGame objects. The base class provides:
- A blocking GET with a bounded timeout and transport retries (tenacity),
  run in the default executor so the three feeds can be fetched concurrently
- Per-feed circuit breaker protection (pybreaker)
- Payload envelope extraction and per-record validation
- Status vocabulary mapping with a PENDING fallback

Failures never propagate: an unreachable feed, a non-2xx response, an open
circuit or a malformed envelope all yield an empty list for that cycle, and a
malformed record is dropped without affecting the rest of the payload.

Usage:
    class CurlingAdapter(BaseFeedAdapter):
        sport = Sport.CURLING
        source_tag = "curling-api"
        record_model = CurlingGamePayload
        STATUS_MAP = {"LIVE": LifecycleState.ACTIVE, ...}

        def to_game(self, record, observed_at):
            return NormalizedGame(...)
"""
import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Type

import httpx
from pybreaker import CircuitBreaker, CircuitBreakerError
from pydantic import BaseModel, ValidationError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.core.config import settings
from app.core.exceptions import PayloadValidationError
from app.core.logging import get_logger
from app.core.metrics import feed_fetch_failures_total, feed_games_fetched_total
from app.models import LifecycleState, NormalizedGame, Sport
from app.services.sync.circuit_breaker import get_feed_breaker
from app.utils.timezone import utc_now

logger = get_logger(__name__)


class BaseFeedAdapter(ABC):
    """
    Base class for upstream feed adapters.

    Subclasses set the class attributes below and implement ``to_game``.

    Attributes:
        sport: Sport produced by this feed
        source_tag: Identifier recorded on every event ("soccer-api", ...)
        endpoint_path: Path appended to the base URL
        envelope_key: Top-level key holding the list of records
        record_model: Pydantic model of one wire record
        STATUS_MAP: Upstream status string -> LifecycleState
    """

    sport: Sport
    source_tag: str
    endpoint_path: str = "/api/games"
    envelope_key: str = "games"
    record_model: Type[BaseModel]
    STATUS_MAP: Dict[str, LifecycleState] = {}

    def __init__(
        self,
        base_url: str,
        timeout: Optional[float] = None,
        retry_attempts: Optional[int] = None,
        retry_backoff: float = 0.5,
        breaker: Optional[CircuitBreaker] = None,
    ):
        """
        Args:
            base_url: Feed base URL, e.g. http://localhost:3001
            timeout: Per-request timeout in seconds
            retry_attempts: Total attempts on transport errors
            retry_backoff: Exponential backoff multiplier in seconds (0 disables waiting)
            breaker: Circuit breaker (defaults to the shared one for this feed)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout if timeout is not None else settings.FEED_TIMEOUT_SECONDS
        self.retry_attempts = retry_attempts or settings.FEED_RETRY_ATTEMPTS
        self.retry_backoff = retry_backoff
        self.breaker = breaker or get_feed_breaker(
            self.source_tag,
            fail_max=settings.CIRCUIT_FAIL_MAX,
            reset_timeout=settings.CIRCUIT_RESET_TIMEOUT,
        )

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.endpoint_path}"

    # ========================================================================
    # Fetching
    # ========================================================================

    def _request_payload(self) -> Any:
        """
        GET the feed and decode JSON, retrying transport errors.

        Raises:
            httpx.HTTPError: on transport failure or non-2xx status
            ValueError: on a body that is not JSON
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_backoff, max=5),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        )
        with httpx.Client(timeout=self.timeout) as client:
            for attempt in retrying:
                with attempt:
                    response = client.get(self.url)
                    response.raise_for_status()
                    return response.json()

    async def fetch_games(self) -> List[NormalizedGame]:
        """
        Fetch and normalize the current games of this feed.

        Returns:
            Normalized games, or an empty list if the feed is unusable this cycle
        """
        loop = asyncio.get_running_loop()
        try:
            raw = await loop.run_in_executor(None, self.breaker.call, self._request_payload)
        except CircuitBreakerError as e:
            logger.warning(f"Circuit breaker '{self.source_tag}' is OPEN - skipping fetch ({e})")
            feed_fetch_failures_total.labels(source=self.source_tag, error_type="circuit_open").inc()
            return []
        except httpx.HTTPError as e:
            logger.warning(f"Error fetching {self.sport.value.lower()} games from {self.url}: {e}")
            feed_fetch_failures_total.labels(source=self.source_tag, error_type=type(e).__name__).inc()
            return []
        except ValueError as e:
            logger.warning(f"Invalid JSON from {self.url}: {e}")
            feed_fetch_failures_total.labels(source=self.source_tag, error_type="invalid_json").inc()
            return []

        games = self.normalize_payload(raw)
        feed_games_fetched_total.labels(source=self.source_tag).inc(len(games))
        return games

    # ========================================================================
    # Normalization (pure)
    # ========================================================================

    def normalize_payload(self, raw: Any, observed_at: Optional[datetime] = None) -> List[NormalizedGame]:
        """
        Convert a decoded feed response into normalized games.

        Records that fail validation are logged and dropped individually.
        """
        records = self._extract_records(raw)
        observed_at = observed_at or utc_now()

        games = []
        for record in records:
            try:
                wire = self.record_model.model_validate(record)
                games.append(self.to_game(wire, observed_at))
            except (ValidationError, PayloadValidationError) as e:
                logger.warning(f"{self.source_tag}: dropping malformed record: {e}")
        return games

    def _extract_records(self, raw: Any) -> List[Any]:
        if not isinstance(raw, dict) or not isinstance(raw.get(self.envelope_key), list):
            logger.warning(
                f"{self.source_tag}: unexpected payload shape, expected a '{self.envelope_key}' list"
            )
            feed_fetch_failures_total.labels(source=self.source_tag, error_type="malformed_payload").inc()
            return []
        return raw[self.envelope_key]

    def map_status(self, raw_status: Optional[str]) -> LifecycleState:
        """Map upstream status vocabulary; unknown values become PENDING."""
        state = self.STATUS_MAP.get((raw_status or "").strip().upper())
        if state is None:
            logger.warning(
                f"Unknown {self.sport.value.lower()} status: {raw_status!r}, defaulting to PENDING"
            )
            return LifecycleState.PENDING
        return state

    @abstractmethod
    def to_game(self, record: BaseModel, observed_at: datetime) -> NormalizedGame:
        """Convert one validated wire record into a NormalizedGame."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.source_tag} {self.url}>"
