"""
Fixed-window rate limiting

Two backends share one interface:
- MemoryRateLimiter: per-process, sharded, bounded, with TTL eviction
- RedisRateLimiter: shared across workers via an atomic Lua script
"""

import threading
import time
import logging
import zlib
from collections import OrderedDict
from typing import Callable, List, Optional, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from salon_waitlist.config import settings

logger = logging.getLogger(__name__)


class _Shard:
    __slots__ = ("lock", "windows")

    def __init__(self):
        self.lock = threading.Lock()
        # key -> (window_expires_at, count); ordered by window start
        self.windows: "OrderedDict[str, Tuple[float, int]]" = OrderedDict()


class MemoryRateLimiter:
    """
    In-process fixed-window counter.

    Keys are spread over independent shards; each shard holds at most
    `max_keys_per_shard` windows, dropping expired windows first and the
    oldest live window when full.
    """

    def __init__(
        self,
        shards: int = 16,
        max_keys_per_shard: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        if shards < 1 or max_keys_per_shard < 1:
            raise ValueError("shards and max_keys_per_shard must be positive")
        self._shards: List[_Shard] = [_Shard() for _ in range(shards)]
        self._max_keys = max_keys_per_shard
        self._clock = clock

    def _shard_for(self, key: str) -> _Shard:
        return self._shards[zlib.crc32(key.encode()) % len(self._shards)]

    def _evict(self, shard: _Shard, now: float) -> None:
        windows = shard.windows
        while windows:
            oldest_key, (expires_at, _) = next(iter(windows.items()))
            if expires_at > now:
                break
            del windows[oldest_key]
        while len(windows) >= self._max_keys:
            windows.popitem(last=False)

    async def is_rate_limited(self, key: str, limit: int, window: int = 60) -> Tuple[bool, int]:
        now = self._clock()
        shard = self._shard_for(key)
        with shard.lock:
            current = shard.windows.get(key)
            if current is None or current[0] <= now:
                shard.windows.pop(key, None)
                self._evict(shard, now)
                shard.windows[key] = (now + window, 1)
                return False, 1

            expires_at, count = current
            if count >= limit:
                return True, count
            shard.windows[key] = (expires_at, count + 1)
            return False, count + 1

    def __len__(self) -> int:
        return sum(len(shard.windows) for shard in self._shards)


class RedisRateLimiter:
    """
    Fixed-window counter stored in Redis
    """

    LUA_SCRIPT = """
    local rate_key = KEYS[1]
    local limit = tonumber(ARGV[1])
    local window = tonumber(ARGV[2])

    local current = tonumber(redis.call("get", rate_key) or "0")
    if current >= limit then
        return {1, current}
    end

    current = redis.call("incr", rate_key)
    if current == 1 then
        redis.call("expire", rate_key, window)
    end
    return {0, current}
    """

    def __init__(self, client: Optional[redis.Redis] = None):
        self._client = client

    async def get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                settings.REDIS_URL,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
                decode_responses=True
            )
        return self._client

    async def is_rate_limited(self, key: str, limit: int, window: int = 60) -> Tuple[bool, int]:
        client = await self.get_client()
        try:
            result = await client.eval(self.LUA_SCRIPT, 1, f"rate:{key}", limit, window)
        except RedisError as e:
            logger.error(f"Error checking rate limit for {key}: {e}")
            return False, 0  # Fail open for rate limiting
        return bool(result[0]), int(result[1])

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def build_rate_limiter():
    if settings.RATE_LIMIT_BACKEND == "redis":
        return RedisRateLimiter()
    return MemoryRateLimiter(
        shards=settings.RATE_LIMIT_SHARDS,
        max_keys_per_shard=settings.RATE_LIMIT_MAX_KEYS_PER_SHARD,
    )


rate_limiter = build_rate_limiter()
