"""
Date/time helpers — framework-agnostic.

MongoDB returns naive datetimes unless the client is tz-aware, so every
comparison against "now" goes through ``ensure_utc`` first.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return *value* as an aware UTC datetime.

    Naive datetimes (no ``tzinfo``) are assumed to be UTC. ``None`` passes
    through unchanged.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_expired(expires_at: datetime, now: datetime) -> bool:
    """Return True once *now* is strictly past *expires_at*."""
    return ensure_utc(now) > ensure_utc(expires_at)
