"""
Periodic cleanup of dead credentials.

A row is dead once it is expired, used/superseded, or older than
``stale_after_seconds``. Deleting a dead row that a concurrent verify or
consume is reading is harmless: those paths re-check state with
conditional updates, and a vanished row reads as "no credential".
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import timedelta

from repositories.password_reset_repository import PasswordResetRepository
from repositories.verification_repository import VerificationRepository
from shared.datetime_utils import Clock, utcnow
from shared.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class SweepResult:
    verifications_deleted: int
    resets_deleted: int

    @property
    def total(self) -> int:
        return self.verifications_deleted + self.resets_deleted


class Janitor:
    def __init__(
        self,
        verifications: VerificationRepository,
        resets: PasswordResetRepository,
        stale_after_seconds: int = 86400,
        clock: Clock = utcnow,
    ) -> None:
        self._verifications = verifications
        self._resets = resets
        self._stale_after = timedelta(seconds=stale_after_seconds)
        self._clock = clock

    async def sweep(self) -> SweepResult:
        now = self._clock()
        stale_before = now - self._stale_after
        result = SweepResult(
            verifications_deleted=await self._verifications.delete_stale(
                now, stale_before
            ),
            resets_deleted=await self._resets.delete_stale(now, stale_before),
        )
        log.info(
            "janitor_sweep_completed",
            verifications_deleted=result.verifications_deleted,
            resets_deleted=result.resets_deleted,
        )
        return result

    async def run_forever(self, interval_seconds: float) -> None:
        """Sweep every *interval_seconds* until cancelled.

        A failed sweep is logged and retried on the next tick.
        """
        log.info("janitor_started", interval_seconds=interval_seconds)
        while True:
            try:
                await self.sweep()
            except Exception as e:
                log.error(
                    "janitor_sweep_failed",
                    error=str(e),
                    error_type=type(e).__name__,
                )
            await asyncio.sleep(interval_seconds)
