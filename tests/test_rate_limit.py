from __future__ import annotations

import asyncio

import pytest

from canvasgate.exceptions import RateLimitExceeded
from canvasgate.ratelimit import InMemoryCounter, RateLimiter, RedisCounter

from conftest import FakeRedis, ManualClock


@pytest.mark.asyncio
async def test_concurrent_requests_never_exceed_limit():
    limiter = RateLimiter(InMemoryCounter())
    key = RateLimiter.key_for("llm", "user-1")

    results = await asyncio.gather(*[limiter.allow(key, 50, 60_000) for _ in range(120)])

    assert sum(results) == 50


@pytest.mark.asyncio
async def test_window_resets_after_expiry():
    clock = ManualClock()
    limiter = RateLimiter(InMemoryCounter(clock=clock))

    assert [await limiter.allow("llm:u", 3, 60_000) for _ in range(4)] == [True, True, True, False]

    clock.advance(60_000)
    assert await limiter.allow("llm:u", 3, 60_000) is False

    clock.advance(1)
    assert await limiter.allow("llm:u", 3, 60_000) is True


@pytest.mark.asyncio
async def test_enforce_reports_retry_after_from_window():
    clock = ManualClock()
    limiter = RateLimiter(InMemoryCounter(clock=clock))
    await limiter.enforce("llm:u", 1, 60_000)

    clock.advance(15_500)
    with pytest.raises(RateLimitExceeded) as exc_info:
        await limiter.enforce("llm:u", 1, 60_000)

    assert exc_info.value.retry_after == 45
    assert exc_info.value.status_code == 429


@pytest.mark.asyncio
async def test_keys_are_independent_per_operation_and_subject():
    limiter = RateLimiter(InMemoryCounter())
    assert await limiter.allow(RateLimiter.key_for("llm", "a"), 1, 60_000)
    assert await limiter.allow(RateLimiter.key_for("llm-stream", "a"), 1, 60_000)
    assert await limiter.allow(RateLimiter.key_for("llm", "b"), 1, 60_000)
    assert not await limiter.allow(RateLimiter.key_for("llm", "a"), 1, 60_000)


@pytest.mark.asyncio
async def test_reset_clears_the_window():
    limiter = RateLimiter(InMemoryCounter())
    await limiter.allow("llm:a", 1, 60_000)
    await limiter.reset("llm:a")
    assert await limiter.allow("llm:a", 1, 60_000)


@pytest.mark.asyncio
async def test_purge_expired_windows():
    clock = ManualClock()
    counter = InMemoryCounter(clock=clock)
    await counter.increment("a", 1_000)
    clock.advance(500)
    await counter.increment("b", 1_000)
    clock.advance(600)

    assert counter.purge_expired() == 1


@pytest.mark.asyncio
async def test_idle_windows_are_swept_during_increments():
    clock = ManualClock()
    counter = InMemoryCounter(clock=clock, purge_every=3)
    await counter.increment("complete:a", 1_000)
    await counter.increment("complete:b", 1_000)
    clock.advance(1_500)

    await counter.increment("complete:c", 1_000)

    assert set(counter._windows) == {"complete:c"}


@pytest.mark.asyncio
async def test_limiter_purges_through_backend():
    clock = ManualClock()
    limiter = RateLimiter(InMemoryCounter(clock=clock))
    await limiter.allow("complete:a", 5, 1_000)
    clock.advance(1_001)

    assert limiter.purge_expired() == 1
    assert RateLimiter(RedisCounter(FakeRedis())).purge_expired() == 0


@pytest.mark.asyncio
async def test_redis_counter_sets_expiry_on_first_hit():
    redis = FakeRedis()
    clock = ManualClock()
    counter = RedisCounter(redis, clock=clock)

    first = await counter.increment("llm:u", 60_000)
    second = await counter.increment("llm:u", 60_000)

    assert (first.count, second.count) == (1, 2)
    assert redis.ttl["ratelimit:llm:u"] == 60_000
    assert second.reset_at_ms == clock.now + 60_000


@pytest.mark.asyncio
async def test_redis_counter_repairs_missing_expiry():
    redis = FakeRedis()
    redis.store["ratelimit:llm:u"] = 4
    counter = RedisCounter(redis, clock=ManualClock())

    window = await counter.increment("llm:u", 30_000)

    assert window.count == 5
    assert redis.ttl["ratelimit:llm:u"] == 30_000


@pytest.mark.asyncio
async def test_limiter_over_redis_backend():
    limiter = RateLimiter(RedisCounter(FakeRedis(), clock=ManualClock()))
    results = [await limiter.allow("llm:u", 2, 60_000) for _ in range(3)]
    assert results == [True, True, False]
    await limiter.reset("llm:u")
    assert await limiter.allow("llm:u", 2, 60_000)
