"""Fixed-window counter backends.

A window opens on the first increment for a key and lasts ``window_ms``.
Once the current time passes the window's expiry the next increment opens a
fresh window with a count of 1.
"""

from __future__ import annotations

import asyncio
import time
import zlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class WindowCount:
    count: int
    reset_at_ms: int


class CounterBackend(ABC):
    clock: Callable[[], int] = staticmethod(now_ms)

    @abstractmethod
    async def increment(self, key: str, window_ms: int, amount: int = 1) -> WindowCount:
        """Add ``amount`` to the key's current window and return the new count."""

    @abstractmethod
    async def reset(self, key: str) -> None:
        ...

    def purge_expired(self) -> int:
        """Drop windows past their expiry; backends with native TTLs have none."""
        return 0


class InMemoryCounter(CounterBackend):
    """Single-instance backend: a window map guarded by sharded locks.

    Expired windows are swept every ``purge_every`` increments so keys for
    subjects that stop calling do not accumulate.
    """

    def __init__(
        self,
        shards: int = 64,
        clock: Callable[[], int] = now_ms,
        purge_every: int = 1000,
    ) -> None:
        self._locks = [asyncio.Lock() for _ in range(shards)]
        self._windows: dict[str, list[int]] = {}
        self._increments = 0
        self.purge_every = max(1, purge_every)
        self.clock = clock

    def _lock_for(self, key: str) -> asyncio.Lock:
        return self._locks[zlib.crc32(key.encode("utf-8")) % len(self._locks)]

    async def increment(self, key: str, window_ms: int, amount: int = 1) -> WindowCount:
        async with self._lock_for(key):
            now = self.clock()
            window = self._windows.get(key)
            if window is None or now > window[1]:
                window = [0, now + window_ms]
                self._windows[key] = window
            window[0] += amount
            result = WindowCount(count=window[0], reset_at_ms=window[1])

        self._increments += 1
        if self._increments % self.purge_every == 0:
            self.purge_expired()
        return result

    async def reset(self, key: str) -> None:
        async with self._lock_for(key):
            self._windows.pop(key, None)

    def purge_expired(self) -> int:
        now = self.clock()
        expired = [key for key, (_, reset_at) in self._windows.items() if now > reset_at]
        for key in expired:
            self._windows.pop(key, None)
        return len(expired)


class RedisCounter(CounterBackend):
    """Multi-instance backend using Redis INCRBY with a millisecond TTL."""

    def __init__(self, redis_client: Any, prefix: str = "ratelimit", clock: Callable[[], int] = now_ms) -> None:
        self.redis = redis_client
        self.prefix = prefix
        self.clock = clock

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def increment(self, key: str, window_ms: int, amount: int = 1) -> WindowCount:
        redis_key = self._key(key)
        current = int(await self.redis.incrby(redis_key, amount))
        if current == amount:
            await self.redis.pexpire(redis_key, window_ms)
            ttl = window_ms
        else:
            ttl = int(await self.redis.pttl(redis_key))
            if ttl < 0:
                # Key lost its expiry (e.g. a crash between INCRBY and PEXPIRE).
                await self.redis.pexpire(redis_key, window_ms)
                ttl = window_ms
        return WindowCount(count=current, reset_at_ms=self.clock() + ttl)

    async def reset(self, key: str) -> None:
        await self.redis.delete(self._key(key))
