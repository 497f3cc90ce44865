"""Retry-with-backoff policy shared by the transcription and completion clients."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

import httpx

from voicenotes.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

AUTH_STATUS_CODES = {401, 403}
QUOTA_MARKERS = ("quota", "insufficient_credits", "credit limit", "payment required")


def is_auth_error(exc: BaseException) -> bool:
    """Check if a provider rejected the credentials."""
    return (
        isinstance(exc, httpx.HTTPStatusError)
        and exc.response.status_code in AUTH_STATUS_CODES
    )


def is_quota_error(exc: BaseException) -> bool:
    """Check if a provider reported an exhausted quota or balance."""
    if not isinstance(exc, httpx.HTTPStatusError):
        return False
    status = exc.response.status_code
    if status == 402:
        return True
    if status == 429:
        body = exc.response.text.lower()
        return any(marker in body for marker in QUOTA_MARKERS)
    return False


def is_transient_error(exc: BaseException) -> bool:
    """Check if an error is worth retrying.

    Network failures, timeouts, 5xx responses and plain rate limiting are
    transient. Authentication and quota errors are not.
    """
    if isinstance(exc, (httpx.TransportError, TimeoutError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        if is_auth_error(exc) or is_quota_error(exc):
            return False
        status = exc.response.status_code
        return status == 429 or 500 <= status < 600
    return False


@dataclass
class RetryPolicy:
    """Bounded retries with exponential backoff.

    `retries` counts the additional attempts after the first one. The wait
    before retry n is `backoff_base * 2 ** (n - 1)` seconds.
    """

    retries: int = 2
    backoff_base: float = 2.0
    is_transient: Callable[[BaseException], bool] = is_transient_error
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        """Build the policy from configuration."""
        return cls(retries=settings.retry_attempts, backoff_base=settings.backoff_base)

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt (1-based)."""
        return self.backoff_base * 2 ** (attempt - 1)

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "call") -> T:
        """Run `operation`, retrying transient failures.

        The last error is re-raised once attempts are exhausted, and any
        non-transient error is re-raised immediately.
        """
        total = self.retries + 1
        for attempt in range(1, total + 1):
            try:
                return await operation()
            except Exception as e:
                if not self.is_transient(e):
                    raise
                if attempt == total:
                    logger.error(f"{description} failed after {total} attempts: {e}")
                    raise
                wait = self.delay_for(attempt)
                logger.warning(
                    f"{description} attempt {attempt}/{total} failed ({e}), retrying in {wait}s"
                )
                await self.sleep(wait)
        raise RuntimeError(f"{description}: retry policy ran no attempts")
