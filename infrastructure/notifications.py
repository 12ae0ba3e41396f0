"""Background notification dispatch.

Email delivery is never on the request path: services hand a send callable
to NotificationDispatcher.dispatch(), which schedules it with
asyncio.create_task() and returns immediately. Each send is retried with
exponential backoff and jitter; when every attempt fails the failure goes
to the error log and nowhere else, because the credential it announces is
already stored and the user can ask for a resend.
"""

from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable

from shared.logging import get_logger

log = get_logger(__name__)

SendFn = Callable[[], Awaitable[bool]]


class NotificationDispatcher:
    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 10.0,
        jitter: bool = True,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.max_attempts = max(int(max_attempts), 1)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self._sleep = sleep
        # Strong references so the event loop cannot garbage-collect running sends
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, kind: str, send: SendFn, **context: Any) -> asyncio.Task:
        """Schedule *send* in the background and return its task without awaiting it."""
        task = asyncio.create_task(self._deliver(kind, send, context))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _delay_for(self, attempt: int) -> float:
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        if self.jitter:
            delay *= 0.5 + random.random()
        return delay

    async def _deliver(self, kind: str, send: SendFn, context: dict) -> bool:
        last_error = "rejected"
        for attempt in range(1, self.max_attempts + 1):
            try:
                if await send():
                    log.info(
                        "notification_sent", kind=kind, attempt=attempt, **context
                    )
                    return True
                last_error = "rejected"
            except Exception as e:
                last_error = f"{type(e).__name__}: {e}"

            if attempt < self.max_attempts:
                delay = self._delay_for(attempt)
                log.warning(
                    "notification_retry",
                    kind=kind,
                    attempt=attempt,
                    delay=round(delay, 3),
                    error=last_error,
                    **context,
                )
                await self._sleep(delay)

        log.error(
            "notification_failed",
            kind=kind,
            attempts=self.max_attempts,
            error=last_error,
            **context,
        )
        return False

    async def drain(self) -> None:
        """Wait for every in-flight notification (shutdown and tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
