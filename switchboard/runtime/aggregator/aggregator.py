"""MessageAggregator: coalesces bursty fragments into one logical turn.

Each sender has at most one pending aggregate. Every fragment restarts the
debounce window; when the window closes without a new fragment, the
fragments are joined in arrival order and handed to the turn handler.
Media bypasses debouncing but first flushes any pending text so turns
keep their arrival order.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from switchboard.config.models.aggregator import AggregatorConfig
from switchboard.observability.logging import get_logger
from switchboard.observability.metrics import TURNS_FLUSHED
from switchboard.runtime.aggregator.models import FlushReason, PendingAggregate
from switchboard.runtime.clock import Clock, SystemClock
from switchboard.runtime.mutex import KeyedMutex
from switchboard.runtime.timers import TimerScheduler

logger = get_logger(__name__)

TurnHandler = Callable[[str, str], Awaitable[None]]
MediaHandler = Callable[[str, Any], Awaitable[None]]


class MessageAggregator:
    """Sliding-window debouncer keyed by sender."""

    def __init__(
        self,
        config: AggregatorConfig,
        on_turn: TurnHandler,
        on_media: MediaHandler | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize aggregator.

        Args:
            config: Window length and fragment delimiter
            on_turn: Receives (sender, text) for every flushed turn
            on_media: Receives (sender, payload) for media messages
            clock: Time source for the debounce timers
        """
        self._config = config
        self._on_turn = on_turn
        self._on_media = on_media
        self._clock = clock or SystemClock()
        self._timers = TimerScheduler(self._clock)
        self._mutex = KeyedMutex()
        self._pending: dict[str, PendingAggregate] = {}

    @property
    def window(self) -> float:
        return self._config.window_seconds

    def pending(self, sender: str) -> PendingAggregate | None:
        return self._pending.get(sender)

    def __len__(self) -> int:
        return len(self._pending)

    async def on_fragment(self, sender: str, text: str, timestamp: float | None = None) -> None:
        """Buffer a text fragment and (re)start the sender's window."""
        async with self._mutex.acquire(sender):
            now = self._clock.now()
            deadline = now + self.window
            aggregate = self._pending.get(sender)

            if aggregate is None:
                aggregate = PendingAggregate(
                    sender=sender,
                    fragments=[text],
                    first_at=timestamp if timestamp is not None else now,
                    deadline=deadline,
                )
                self._pending[sender] = aggregate
                generation = aggregate.generation
                logger.debug("aggregate_started", sender=sender)
            else:
                generation = aggregate.add(text, deadline)
                logger.debug(
                    "aggregate_extended",
                    sender=sender,
                    fragments=len(aggregate.fragments),
                )

            self._timers.schedule(
                sender,
                self.window,
                lambda: self._expire(sender, generation),
            )

    async def _expire(self, sender: str, generation: int) -> None:
        async with self._mutex.acquire(sender):
            aggregate = self._pending.get(sender)
            if aggregate is None or aggregate.generation != generation:
                logger.debug("aggregate_timer_stale", sender=sender, generation=generation)
                return
            del self._pending[sender]

        await self._hand_off(aggregate, FlushReason.WINDOW)

    async def on_media(self, sender: str, payload: Any) -> None:
        """Flush pending text for `sender`, then hand off the media payload."""
        await self.flush(sender, reason=FlushReason.MEDIA)

        if self._on_media is None:
            logger.warning("media_handler_missing", sender=sender)
            return
        try:
            await self._on_media(sender, payload)
        except Exception as e:
            logger.error(
                "media_handoff_failed",
                sender=sender,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def flush(self, sender: str, reason: FlushReason = FlushReason.FORCED) -> str | None:
        """Emit the sender's pending aggregate now.

        Returns:
            The flushed text, or None if nothing was pending
        """
        async with self._mutex.acquire(sender):
            self._timers.cancel(sender)
            aggregate = self._pending.pop(sender, None)

        if aggregate is None:
            return None
        return await self._hand_off(aggregate, reason)

    async def _hand_off(self, aggregate: PendingAggregate, reason: FlushReason) -> str:
        text = aggregate.text(self._config.delimiter)
        TURNS_FLUSHED.labels(reason=reason.value).inc()
        logger.info(
            "aggregate_flushed",
            sender=aggregate.sender,
            fragments=len(aggregate.fragments),
            reason=reason.value,
        )
        try:
            await self._on_turn(aggregate.sender, text)
        except Exception as e:
            logger.error(
                "turn_handoff_failed",
                sender=aggregate.sender,
                error=str(e),
                error_type=type(e).__name__,
            )
        return text

    async def close(self) -> None:
        """Flush every pending aggregate and stop the timers."""
        for sender in list(self._pending):
            await self.flush(sender, reason=FlushReason.SHUTDOWN)
        await self._timers.close()
