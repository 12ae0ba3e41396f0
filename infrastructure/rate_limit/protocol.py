"""RateLimiter protocol — services depend on this, not a concrete backend.

Policy is a fixed window per key: the first allowed hit opens a window of
``window_seconds``; up to ``limit`` hits are admitted inside it; the window
resets lazily on the first hit after it closes. A burst straddling a window
boundary can therefore admit close to ``2 * limit`` hits.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    retry_after_seconds: int
    current_value: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(self.limit - self.current_value, 0)


class RateLimiter(Protocol):
    async def hit(
        self, key: str, *, limit: int, window_seconds: int
    ) -> RateLimitResult:
        """Count one hit against *key* if allowed; refused hits are not counted."""
        ...
