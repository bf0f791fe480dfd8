"""Tests for TimerScheduler."""

import pytest

from switchboard.runtime.clock import ManualClock
from switchboard.runtime.timers import TimerScheduler


class TestTimerScheduler:
    """Keyed one-shot timers."""

    @pytest.mark.asyncio
    async def test_fires_after_delay(self, clock: ManualClock) -> None:
        timers = TimerScheduler(clock)
        fired: list[str] = []

        async def callback() -> None:
            fired.append("a")

        timers.schedule("a", 3.0, callback)
        await clock.advance(2.5)
        assert fired == []

        await clock.advance(0.5)
        assert fired == ["a"]
        assert not timers.pending("a")

    @pytest.mark.asyncio
    async def test_reschedule_replaces_pending_timer(self, clock: ManualClock) -> None:
        timers = TimerScheduler(clock)
        fired: list[str] = []

        async def first() -> None:
            fired.append("first")

        async def second() -> None:
            fired.append("second")

        timers.schedule("a", 3.0, first)
        await clock.advance(2.0)
        timers.schedule("a", 3.0, second)
        await clock.advance(2.0)
        assert fired == []

        await clock.advance(1.0)
        assert fired == ["second"]

    @pytest.mark.asyncio
    async def test_cancel(self, clock: ManualClock) -> None:
        timers = TimerScheduler(clock)
        fired: list[str] = []

        async def callback() -> None:
            fired.append("a")

        timers.schedule("a", 1.0, callback)
        assert timers.cancel("a") is True
        assert timers.cancel("a") is False

        await clock.advance(5.0)
        assert fired == []

    @pytest.mark.asyncio
    async def test_callback_error_is_contained(self, clock: ManualClock) -> None:
        timers = TimerScheduler(clock)
        fired: list[str] = []

        async def broken() -> None:
            raise RuntimeError("boom")

        async def healthy() -> None:
            fired.append("b")

        timers.schedule("a", 1.0, broken)
        timers.schedule("b", 1.0, healthy)
        await clock.advance(1.0)

        assert fired == ["b"]

    @pytest.mark.asyncio
    async def test_close_cancels_pending(self, clock: ManualClock) -> None:
        timers = TimerScheduler(clock)
        fired: list[str] = []

        async def callback() -> None:
            fired.append("a")

        timers.schedule("a", 1.0, callback)
        await timers.close()
        await clock.advance(5.0)

        assert fired == []
        assert not timers.pending("a")
