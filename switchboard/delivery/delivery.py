"""DeliveryQueue: dual-write audit path for conversation turns.

Every turn is written straight to the store and also pushed onto a
durable queue whose consumer persists it later. Stores drop the second
copy by `Turn.dedupe_key`, so the two legs never produce duplicates.
"""

import asyncio
from datetime import datetime
from uuid import UUID

from switchboard.config.models.delivery import DeliveryConfig
from switchboard.conversation.models import Turn, TurnRole, utc_now
from switchboard.conversation.store import ThreadStore
from switchboard.db.errors import NotFoundError, StoreError
from switchboard.delivery.queue import TurnQueue
from switchboard.errors import DeliveryError
from switchboard.observability.logging import get_logger
from switchboard.observability.metrics import DELIVERY_WRITES
from switchboard.runtime.clock import Clock, SystemClock

logger = get_logger(__name__)


class DeliveryQueue:
    """Records turns without blocking the reply path."""

    def __init__(
        self,
        store: ThreadStore,
        queue: TurnQueue,
        config: DeliveryConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._queue = queue
        self._config = config or DeliveryConfig()
        self._clock = clock or SystemClock()
        self._submissions: set[asyncio.Task[None]] = set()
        self._running = False
        self._consumer_task: asyncio.Task[None] | None = None

    # =========================================================================
    # Producer side
    # =========================================================================

    async def enqueue(
        self,
        thread_id: UUID,
        role: TurnRole,
        content: str,
        created_at: datetime | None = None,
    ) -> Turn:
        """Write a turn directly and push it onto the durable queue.

        Raises:
            DeliveryError: Both legs failed
        """
        turn = Turn(
            thread_id=thread_id,
            role=role,
            content=content,
            created_at=created_at or utc_now(),
        )
        written, queued = await asyncio.gather(
            self._write_direct(turn),
            self._push(turn),
        )
        if not written and not queued:
            raise DeliveryError(f"Turn {turn.id} could not be written or queued")
        return turn

    async def _write_direct(self, turn: Turn) -> bool:
        try:
            await self._store.append_turn(turn)
        except StoreError as e:
            DELIVERY_WRITES.labels(leg="direct", outcome="error").inc()
            logger.warning(
                "turn_direct_write_failed",
                thread_id=str(turn.thread_id),
                turn_id=str(turn.id),
                error=str(e),
            )
            return False
        DELIVERY_WRITES.labels(leg="direct", outcome="ok").inc()
        return True

    async def _push(self, turn: Turn) -> bool:
        try:
            await self._queue.push(turn)
        except StoreError as e:
            DELIVERY_WRITES.labels(leg="queue", outcome="error").inc()
            logger.warning(
                "turn_queue_push_failed",
                thread_id=str(turn.thread_id),
                turn_id=str(turn.id),
                error=str(e),
            )
            return False
        DELIVERY_WRITES.labels(leg="queue", outcome="ok").inc()
        return True

    def submit(
        self,
        thread_id: UUID,
        role: TurnRole,
        content: str,
        created_at: datetime | None = None,
    ) -> asyncio.Task[None]:
        """Schedule `enqueue` in the background and return immediately."""
        task = asyncio.create_task(
            self._enqueue_logged(thread_id, role, content, created_at or utc_now())
        )
        self._submissions.add(task)
        task.add_done_callback(self._submissions.discard)
        return task

    async def _enqueue_logged(
        self,
        thread_id: UUID,
        role: TurnRole,
        content: str,
        created_at: datetime,
    ) -> None:
        try:
            await self.enqueue(thread_id, role, content, created_at)
        except DeliveryError as e:
            logger.error("turn_delivery_failed", thread_id=str(thread_id), error=e.message)

    async def drain(self) -> None:
        """Wait for every submitted enqueue to finish."""
        while self._submissions:
            await asyncio.gather(*list(self._submissions))

    # =========================================================================
    # Consumer side
    # =========================================================================

    async def start(self) -> None:
        """Launch the background consumer loop."""
        if self._running:
            logger.warning("delivery_consumer_already_running")
            return

        self._running = True
        self._consumer_task = asyncio.create_task(self._consume_loop())
        logger.info(
            "delivery_consumer_started",
            block_timeout_seconds=self._config.block_timeout_seconds,
        )

    async def stop(self) -> None:
        """Stop the consumer loop."""
        if not self._running:
            return

        self._running = False
        if self._consumer_task:
            self._consumer_task.cancel()
            try:
                await self._consumer_task
            except asyncio.CancelledError:
                pass
            self._consumer_task = None

        logger.info("delivery_consumer_stopped")

    @property
    def running(self) -> bool:
        return self._running

    async def _consume_loop(self) -> None:
        while self._running:
            try:
                await self.consume_once()
            except StoreError as e:
                logger.error("delivery_consumer_error", error=str(e))
                await self._clock.sleep(self._config.error_backoff_seconds)
            except Exception as e:
                logger.exception(
                    "delivery_consumer_unexpected_error",
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await self._clock.sleep(self._config.error_backoff_seconds)

    async def consume_once(self) -> Turn | None:
        """Pop one queued turn and persist it.

        A turn whose store write fails on a connection error goes back on the
        queue; a turn whose thread was deleted is dropped.

        Returns:
            The turn handled, or None if the pop timed out
        """
        turn = await self._queue.pop(timeout=self._config.block_timeout_seconds)
        if turn is None:
            return None

        try:
            written = await self._store.append_turn(turn)
        except NotFoundError:
            DELIVERY_WRITES.labels(leg="consumer", outcome="orphaned").inc()
            logger.warning(
                "queued_turn_orphaned",
                thread_id=str(turn.thread_id),
                turn_id=str(turn.id),
            )
            return turn
        except StoreError:
            DELIVERY_WRITES.labels(leg="consumer", outcome="error").inc()
            await self._queue.push(turn)
            raise

        DELIVERY_WRITES.labels(leg="consumer", outcome="ok" if written else "duplicate").inc()
        logger.debug(
            "queued_turn_persisted",
            thread_id=str(turn.thread_id),
            turn_id=str(turn.id),
            duplicate=not written,
        )
        return turn
