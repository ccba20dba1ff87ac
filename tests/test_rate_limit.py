"""
Tests for rate limiting backends
"""

import pytest
from unittest.mock import AsyncMock

from redis.exceptions import ConnectionError as RedisConnectionError

from salon_waitlist.core.rate_limit import MemoryRateLimiter, RedisRateLimiter


def test_rejects_invalid_sizes():
    with pytest.raises(ValueError):
        MemoryRateLimiter(shards=0)


class FakeMonotonic:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.mark.asyncio
class TestMemoryRateLimiter:

    async def test_limit_within_window(self):
        limiter = MemoryRateLimiter(shards=4, max_keys_per_shard=16, clock=FakeMonotonic())

        results = [await limiter.is_rate_limited("actor:1", limit=3, window=60) for _ in range(4)]

        assert results == [(False, 1), (False, 2), (False, 3), (True, 3)]

    async def test_window_resets(self):
        clock = FakeMonotonic()
        limiter = MemoryRateLimiter(shards=1, max_keys_per_shard=16, clock=clock)
        for _ in range(2):
            await limiter.is_rate_limited("actor:1", limit=2, window=60)
        assert (await limiter.is_rate_limited("actor:1", limit=2, window=60))[0] is True

        clock.now += 60
        assert await limiter.is_rate_limited("actor:1", limit=2, window=60) == (False, 1)

    async def test_keys_are_independent(self):
        limiter = MemoryRateLimiter(clock=FakeMonotonic())
        await limiter.is_rate_limited("actor:1", limit=1)

        assert (await limiter.is_rate_limited("actor:1", limit=1))[0] is True
        assert (await limiter.is_rate_limited("actor:2", limit=1))[0] is False

    async def test_shard_size_is_bounded(self):
        limiter = MemoryRateLimiter(shards=1, max_keys_per_shard=5, clock=FakeMonotonic())

        for i in range(50):
            await limiter.is_rate_limited(f"actor:{i}", limit=10)

        assert len(limiter) == 5

    async def test_expired_windows_are_evicted_first(self):
        clock = FakeMonotonic()
        limiter = MemoryRateLimiter(shards=1, max_keys_per_shard=10, clock=clock)
        for i in range(5):
            await limiter.is_rate_limited(f"old:{i}", limit=10, window=10)

        clock.now += 11
        await limiter.is_rate_limited("new", limit=10, window=10)

        assert len(limiter) == 1


@pytest.mark.asyncio
class TestRedisRateLimiter:

    async def test_uses_script_result(self):
        client = AsyncMock()
        client.eval.return_value = [1, 10]
        limiter = RedisRateLimiter(client=client)

        assert await limiter.is_rate_limited("actor:1:waitlist", 10, 60) == (True, 10)
        client.eval.assert_awaited_once_with(RedisRateLimiter.LUA_SCRIPT, 1, "rate:actor:1:waitlist", 10, 60)

    async def test_fails_open_when_redis_is_down(self):
        client = AsyncMock()
        client.eval.side_effect = RedisConnectionError("connection refused")
        limiter = RedisRateLimiter(client=client)

        assert await limiter.is_rate_limited("actor:1:waitlist", 10, 60) == (False, 0)

    async def test_close(self):
        client = AsyncMock()
        limiter = RedisRateLimiter(client=client)

        await limiter.close()

        client.aclose.assert_awaited_once()
