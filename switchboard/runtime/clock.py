"""Injectable time source.

Debounce timers and run polling sleep through a Clock so tests can move
time forward explicitly with ManualClock.
"""

import asyncio
from typing import Protocol


class Clock(Protocol):
    """Monotonic time plus cooperative sleep."""

    def now(self) -> float: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Clock backed by the running event loop."""

    def now(self) -> float:
        return asyncio.get_running_loop().time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class ManualClock:
    """Clock that only moves when `advance()` is awaited.

    Sleepers are woken in deadline order, and the event loop is given a
    chance to run their continuations before `advance()` returns.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._sleepers: list[tuple[float, int, asyncio.Future[None]]] = []
        self._seq = 0

    def now(self) -> float:
        return self._now

    async def sleep(self, seconds: float) -> None:
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._seq += 1
        self._sleepers.append((self._now + seconds, self._seq, future))
        await future

    @property
    def pending_sleepers(self) -> int:
        return sum(1 for _, _, f in self._sleepers if not f.done())

    async def advance(self, seconds: float) -> None:
        """Move time forward, waking every sleeper whose deadline passes."""
        target = self._now + seconds
        while True:
            await _settle()
            due = sorted(
                (entry for entry in self._sleepers if entry[0] <= target),
                key=lambda entry: (entry[0], entry[1]),
            )
            if not due:
                break
            deadline, _, future = due[0]
            self._sleepers.remove(due[0])
            self._now = max(self._now, deadline)
            if not future.done():
                future.set_result(None)
        self._now = target
        await _settle()


async def _settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)
