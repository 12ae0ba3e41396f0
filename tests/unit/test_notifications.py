"""Unit tests for NotificationDispatcher — fire-and-forget delivery with retries."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from infrastructure.notifications import NotificationDispatcher


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_dispatcher(sleeps):
    async def record_sleep(delay):
        sleeps.append(delay)

    def _make(**kwargs):
        kwargs.setdefault("jitter", False)
        return NotificationDispatcher(sleep=record_sleep, **kwargs)

    return _make


class TestNotificationDispatcher:
    async def test_dispatch_returns_before_send_completes(self, make_dispatcher):
        gate = asyncio.Event()

        async def slow_send():
            await gate.wait()
            return True

        dispatcher = make_dispatcher()
        task = dispatcher.dispatch("verification_email", slow_send)
        assert not task.done()
        assert dispatcher.pending == 1

        gate.set()
        await dispatcher.drain()
        assert task.result() is True
        assert dispatcher.pending == 0

    async def test_first_success_stops(self, make_dispatcher, sleeps):
        send = AsyncMock(return_value=True)
        dispatcher = make_dispatcher()
        assert await dispatcher.dispatch("k", send) is True
        send.assert_awaited_once()
        assert sleeps == []

    async def test_retries_rejections_with_backoff(self, make_dispatcher, sleeps):
        send = AsyncMock(side_effect=[False, False, True])
        dispatcher = make_dispatcher(max_attempts=3, base_delay=0.5)
        assert await dispatcher.dispatch("k", send) is True
        assert send.await_count == 3
        assert sleeps == [0.5, 1.0]

    async def test_exceptions_are_retried_then_logged(self, make_dispatcher, sleeps):
        send = AsyncMock(side_effect=RuntimeError("smtp down"))
        dispatcher = make_dispatcher(max_attempts=3)
        assert await dispatcher.dispatch("k", send) is False
        assert send.await_count == 3
        assert len(sleeps) == 2

    async def test_backoff_is_capped(self, make_dispatcher, sleeps):
        send = AsyncMock(return_value=False)
        dispatcher = make_dispatcher(max_attempts=5, base_delay=1.0, max_delay=3.0)
        await dispatcher.dispatch("k", send)
        assert sleeps == [1.0, 2.0, 3.0, 3.0]

    async def test_jitter_stays_within_bounds(self, sleeps):
        async def record_sleep(delay):
            sleeps.append(delay)

        dispatcher = NotificationDispatcher(
            max_attempts=2, base_delay=1.0, jitter=True, sleep=record_sleep
        )
        await dispatcher.dispatch("k", AsyncMock(return_value=False))
        assert 0.5 <= sleeps[0] <= 1.5

    async def test_drain_waits_for_everything(self, make_dispatcher):
        send = AsyncMock(return_value=True)
        dispatcher = make_dispatcher()
        for _ in range(5):
            dispatcher.dispatch("k", send)
        await dispatcher.drain()
        assert send.await_count == 5
        assert dispatcher.pending == 0

    def test_max_attempts_floor(self):
        assert NotificationDispatcher(max_attempts=0).max_attempts == 1
