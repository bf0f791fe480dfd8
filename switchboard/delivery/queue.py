"""Durable FIFO queues for turns awaiting persistence."""

import asyncio
from abc import ABC, abstractmethod

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from switchboard.conversation.models import Turn
from switchboard.db.errors import ConnectionError
from switchboard.observability.logging import get_logger

logger = get_logger(__name__)


class TurnQueue(ABC):
    """Abstract FIFO of turns."""

    @abstractmethod
    async def push(self, turn: Turn) -> None:
        """Append a turn to the tail."""
        pass

    @abstractmethod
    async def pop(self, timeout: float) -> Turn | None:
        """Remove the head, waiting at most `timeout` seconds.

        Returns:
            The turn, or None if the queue stayed empty
        """
        pass


class InMemoryTurnQueue(TurnQueue):
    """asyncio.Queue-backed queue for tests and single-process use."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Turn] = asyncio.Queue()

    async def push(self, turn: Turn) -> None:
        await self._queue.put(turn)

    async def pop(self, timeout: float) -> Turn | None:
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except TimeoutError:
            return None

    def __len__(self) -> int:
        return self._queue.qsize()


class RedisTurnQueue(TurnQueue):
    """Redis list queue: LPUSH at the tail, BRPOP from the head.

    Entries are Turn JSON documents.
    """

    def __init__(self, redis: Redis, key: str = "switchboard:turns") -> None:
        self._redis = redis
        self._key = key

    async def push(self, turn: Turn) -> None:
        try:
            await self._redis.lpush(self._key, turn.model_dump_json())
        except RedisError as e:
            raise ConnectionError(f"Failed to push turn: {e}", cause=e) from e

    async def pop(self, timeout: float) -> Turn | None:
        try:
            item = await self._redis.brpop([self._key], timeout=timeout)
        except RedisError as e:
            raise ConnectionError(f"Failed to pop turn: {e}", cause=e) from e

        if item is None:
            return None

        _, value = item
        try:
            return Turn.model_validate_json(value)
        except ValidationError as e:
            logger.warning("turn_queue_corrupted_entry", key=self._key, error=str(e))
            return None
