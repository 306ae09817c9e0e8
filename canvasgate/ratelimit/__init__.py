"""Fixed-window rate limiting."""

from .counter import CounterBackend, InMemoryCounter, RedisCounter, WindowCount
from .limiter import RateLimiter, RateLimitInfo

__all__ = [
    "CounterBackend",
    "InMemoryCounter",
    "RateLimitInfo",
    "RateLimiter",
    "RedisCounter",
    "WindowCount",
]
