"""Keyed one-shot timers over a Clock."""

import asyncio
from collections.abc import Awaitable, Callable

from switchboard.observability.logging import get_logger
from switchboard.runtime.clock import Clock

logger = get_logger(__name__)


class TimerScheduler:
    """Schedules at most one pending callback per key.

    Scheduling a key that already has an unfired timer cancels that timer
    first. Once a timer fires it detaches itself from the table, so the
    running callback is never cancelled by a later `schedule()` or
    `cancel()` for the same key.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._running: set[asyncio.Task[None]] = set()

    def schedule(
        self,
        key: str,
        delay: float,
        callback: Callable[[], Awaitable[None]],
    ) -> None:
        self.cancel(key)
        task = asyncio.create_task(self._run(key, delay, callback))
        self._timers[key] = task

    async def _run(
        self,
        key: str,
        delay: float,
        callback: Callable[[], Awaitable[None]],
    ) -> None:
        await self._clock.sleep(delay)

        task = asyncio.current_task()
        if self._timers.get(key) is task:
            del self._timers[key]
        if task is not None:
            self._running.add(task)
        try:
            await callback()
        except Exception as e:
            logger.error("timer_callback_failed", key=key, error=str(e))
        finally:
            if task is not None:
                self._running.discard(task)

    def cancel(self, key: str) -> bool:
        """Cancel the unfired timer for `key`; returns True if one existed."""
        task = self._timers.pop(key, None)
        if task is None:
            return False
        task.cancel()
        return True

    def pending(self, key: str) -> bool:
        return key in self._timers

    async def close(self) -> None:
        """Cancel unfired timers and wait for running callbacks."""
        pending = list(self._timers.values())
        self._timers.clear()
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        if self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)
