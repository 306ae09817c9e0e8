"""Request rate limiting keyed by (operation, subject)."""

from __future__ import annotations

import math
from dataclasses import dataclass

from canvasgate.exceptions import RateLimitExceeded
from canvasgate.observability.logging import get_logger
from canvasgate.ratelimit.counter import CounterBackend, InMemoryCounter, now_ms

logger = get_logger(__name__)


@dataclass
class RateLimitInfo:
    """Rate limit state after one request."""

    key: str
    limit: int
    count: int
    reset_at_ms: int

    @property
    def allowed(self) -> bool:
        return self.count <= self.limit

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)

    def retry_after(self, now: int | None = None) -> int:
        """Seconds until the window resets, at least 1."""
        wait_ms = self.reset_at_ms - (now if now is not None else now_ms())
        return max(1, math.ceil(wait_ms / 1000))


class RateLimiter:
    """Fixed-window limiter over a pluggable counter backend.

    Within an active window the first ``max_requests`` calls are allowed and
    the rest are denied until the window expires. The counter is incremented
    atomically per key, so concurrent callers never over-admit.
    """

    def __init__(self, backend: CounterBackend | None = None) -> None:
        self.backend = backend or InMemoryCounter()

    @staticmethod
    def key_for(operation: str, subject_id: str) -> str:
        return f"{operation}:{subject_id}"

    async def check(self, key: str, max_requests: int, window_ms: int) -> RateLimitInfo:
        window = await self.backend.increment(key, window_ms)
        return RateLimitInfo(key=key, limit=max_requests, count=window.count, reset_at_ms=window.reset_at_ms)

    async def allow(self, key: str, max_requests: int = 100, window_ms: int = 60_000) -> bool:
        info = await self.check(key, max_requests, window_ms)
        return info.allowed

    async def enforce(self, key: str, max_requests: int, window_ms: int) -> RateLimitInfo:
        """Like :meth:`check` but raises :class:`RateLimitExceeded` when denied."""
        info = await self.check(key, max_requests, window_ms)
        if not info.allowed:
            retry_after = info.retry_after(self.backend.clock())
            logger.info("rate_limit_exceeded", limit=max_requests, retry_after=retry_after)
            raise RateLimitExceeded(retry_after=retry_after)
        return info

    async def reset(self, key: str) -> None:
        await self.backend.reset(key)

    def purge_expired(self) -> int:
        return self.backend.purge_expired()
