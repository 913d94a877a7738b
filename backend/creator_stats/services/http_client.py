"""JSON-over-HTTP client with rate limit retries."""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence

import httpx

from creator_stats.config import settings

logger = logging.getLogger(__name__)


class FetchStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"  # body was not valid JSON
    RATE_LIMITED = "rate_limited"
    TRANSPORT_ERROR = "transport_error"


class FetchResult:
    """Outcome of a GET, keeping the failure cause for retry decisions."""

    def __init__(self, status: FetchStatus, data: Any = None, error: str = None, attempts: int = 1):
        self.status = status
        self.data = data
        self.error = error
        self.attempts = attempts

    @property
    def ok(self) -> bool:
        return self.status == FetchStatus.OK

    def __repr__(self) -> str:
        return f"FetchResult(status={self.status.value}, attempts={self.attempts}, error={self.error!r})"


def is_rate_limit_error(error: Any) -> bool:
    """Check whether an error message signals rate limiting."""
    message = str(error).lower()
    return "429" in message or "too many requests" in message


def error_message(error: Exception) -> str:
    """Text of an httpx error with the request URL removed."""
    message = str(error)
    try:
        url = str(error.request.url)
    except (AttributeError, RuntimeError):
        return message
    return message.replace(url, "").strip()


class JsonHttpClient:
    """Issues GET requests and decodes JSON, never raising to the caller.

    A fresh ``httpx.AsyncClient`` is used per request so the client can be
    shared by concurrent jobs without shared connection state.
    """

    def __init__(
        self,
        retry_delays: Sequence[float] = None,
        timeout: float = None,
        transport: httpx.AsyncBaseTransport = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.retry_delays = tuple(
            settings.rate_limit_retry_delays if retry_delays is None else retry_delays
        )
        self.timeout = settings.request_timeout if timeout is None else timeout
        self.transport = transport
        self._sleep = sleep
        self.headers = {"Accept": "application/json"}

    async def _get_once(self, url: str) -> FetchResult:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport
            ) as client:
                response = await client.get(url, headers=self.headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            # Only the status line counts here, never the URL
            response = e.response
            error = f"HTTP {response.status_code} {response.reason_phrase}"
            if response.status_code == 429 or "too many requests" in response.reason_phrase.lower():
                return FetchResult(FetchStatus.RATE_LIMITED, error=error)
            return FetchResult(FetchStatus.TRANSPORT_ERROR, error=error)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            message = error_message(e)
            status = FetchStatus.RATE_LIMITED if is_rate_limit_error(message) else FetchStatus.TRANSPORT_ERROR
            return FetchResult(status, error=message or type(e).__name__)

        try:
            return FetchResult(FetchStatus.OK, data=response.json())
        except ValueError as e:
            return FetchResult(FetchStatus.EMPTY, error=f"Invalid JSON: {e}")

    async def fetch(self, url: str) -> FetchResult:
        """GET ``url``, retrying rate-limited attempts on the backoff schedule.

        At most ``len(retry_delays)`` attempts are made. Each rate-limited attempt
        except the last waits the next delay in the schedule before retrying.
        Any other failure stops immediately.
        """
        max_attempts = max(len(self.retry_delays), 1)
        result = None

        for attempt in range(1, max_attempts + 1):
            result = await self._get_once(url)
            result.attempts = attempt

            if result.status != FetchStatus.RATE_LIMITED:
                if not result.ok:
                    logger.warning(f"[HTTP] GET {url} failed ({result.status.value}): {result.error}")
                return result

            if attempt < max_attempts:
                delay = self.retry_delays[attempt - 1]
                logger.warning(f"[HTTP] Rate limited on {url}, retrying in {delay}s (attempt {attempt}/{max_attempts})")
                await self._sleep(delay)

        logger.warning(f"[HTTP] Giving up on {url} after {max_attempts} rate limited attempts")
        return result

    async def get_json(self, url: str) -> Optional[Any]:
        """GET ``url`` and return the decoded JSON, or None on any failure."""
        result = await self.fetch(url)
        return result.data if result.ok else None
