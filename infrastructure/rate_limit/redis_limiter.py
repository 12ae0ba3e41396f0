"""Redis-backed fixed-window rate limiter.

One Lua script checks the counter, increments it and sets the window expiry
atomically, giving the same fixed-window policy as the in-memory limiter,
shared by every process pointed at the same Redis. Refused hits never touch
the counter.
"""

from __future__ import annotations

from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import NoScriptError

from infrastructure.rate_limit.in_memory import InMemoryRateLimiter
from infrastructure.rate_limit.protocol import RateLimiter, RateLimitResult
from shared.logging import get_logger

log = get_logger(__name__)

_KEY_PREFIX = "ratelimit:"

# Returns {allowed, count, ttl}
FIXED_WINDOW_SCRIPT = """
local key = KEYS[1]
local limit = tonumber(ARGV[1])
local window = tonumber(ARGV[2])

local count = tonumber(redis.call('GET', key) or '0')
local ttl = redis.call('TTL', key)

if count >= limit then
    if ttl < 0 then
        redis.call('EXPIRE', key, window)
        ttl = window
    end
    return {0, count, ttl}
end

count = redis.call('INCR', key)
if count == 1 or ttl < 0 then
    redis.call('EXPIRE', key, window)
    ttl = window
end
return {1, count, ttl}
"""


class RedisRateLimiter:
    def __init__(self, client: aioredis.Redis) -> None:
        self._redis = client
        self._script_sha: Optional[str] = None

    async def _ensure_script(self) -> str:
        if self._script_sha is None:
            self._script_sha = await self._redis.script_load(FIXED_WINDOW_SCRIPT)
        return self._script_sha

    async def hit(
        self, key: str, *, limit: int, window_seconds: int
    ) -> RateLimitResult:
        window = int(max(window_seconds, 1))
        redis_key = f"{_KEY_PREFIX}{key}"

        sha = await self._ensure_script()
        try:
            result = await self._redis.evalsha(sha, 1, redis_key, limit, window)
        except NoScriptError:
            # Script cache flushed (Redis restart); load it again once
            self._script_sha = None
            sha = await self._ensure_script()
            result = await self._redis.evalsha(sha, 1, redis_key, limit, window)

        allowed, count, ttl = (int(v) for v in result)
        return RateLimitResult(
            allowed=bool(allowed),
            retry_after_seconds=max(ttl, 1),
            current_value=count,
            limit=limit,
        )


def build_rate_limiter(redis_client: Optional[aioredis.Redis]) -> RateLimiter:
    """Return a Redis limiter when a client is available, else an in-memory one."""
    if redis_client is None:
        log.warning("rate_limiter_in_memory", reason="redis_not_configured")
        return InMemoryRateLimiter()
    return RedisRateLimiter(redis_client)
