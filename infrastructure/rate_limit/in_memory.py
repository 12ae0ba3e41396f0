"""Process-local fixed-window rate limiter.

State lives in this process only and vanishes on restart; a deployment with
more than one instance should configure Redis so RedisRateLimiter is used.
"""

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from infrastructure.rate_limit.protocol import RateLimitResult
from shared.datetime_utils import Clock, utcnow

# Past this many tracked keys, closed windows are purged on the next hit
_PURGE_THRESHOLD = 10_000


@dataclass
class _Window:
    count: int
    reset_at: datetime


class InMemoryRateLimiter:
    def __init__(self, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = asyncio.Lock()

    async def hit(
        self, key: str, *, limit: int, window_seconds: int
    ) -> RateLimitResult:
        async with self._lock:
            now = self._clock()
            if len(self._windows) > _PURGE_THRESHOLD:
                self._purge(now)

            window = self._windows.get(key)
            if window is None or now > window.reset_at:
                window = _Window(
                    count=0,
                    reset_at=now + timedelta(seconds=max(int(window_seconds), 1)),
                )
                self._windows[key] = window

            retry_after = max(math.ceil((window.reset_at - now).total_seconds()), 1)
            if window.count >= limit:
                return RateLimitResult(
                    allowed=False,
                    retry_after_seconds=retry_after,
                    current_value=window.count,
                    limit=limit,
                )

            window.count += 1
            return RateLimitResult(
                allowed=True,
                retry_after_seconds=retry_after,
                current_value=window.count,
                limit=limit,
            )

    def _purge(self, now: datetime) -> None:
        for key in [k for k, w in self._windows.items() if now > w.reset_at]:
            del self._windows[key]

    def reset(self) -> None:
        """Forget every window (tests and admin tooling)."""
        self._windows.clear()
