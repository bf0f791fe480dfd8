"""Response cache for idempotent tool calls.

Only successful GET responses are stored. Keys are computed by the
dispatcher; values are the decoded response bodies plus status.
"""

import json
from abc import ABC, abstractmethod
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError

from switchboard.db.errors import ConnectionError
from switchboard.observability.logging import get_logger
from switchboard.runtime.clock import Clock

logger = get_logger(__name__)


class ResponseCache(ABC):
    """Abstract interface for the tool response cache."""

    @abstractmethod
    async def get(self, key: str) -> dict[str, Any] | None:
        """Get a cached entry if present and not expired."""
        pass

    @abstractmethod
    async def set(self, key: str, value: dict[str, Any], ttl: int) -> None:
        """Cache an entry.

        Args:
            key: Cache key
            value: JSON-serializable entry
            ttl: Time to live in seconds
        """
        pass

    @abstractmethod
    async def clear(self) -> int:
        """Drop every entry; returns how many were removed."""
        pass


class InMemoryResponseCache(ResponseCache):
    """In-process cache with clock-driven expiry."""

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, dict[str, Any]]] = {}

    async def get(self, key: str) -> dict[str, Any] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock.now() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: dict[str, Any], ttl: int) -> None:
        self._entries[key] = (self._clock.now() + ttl, value)

    async def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count


class RedisResponseCache(ResponseCache):
    """Redis-backed cache.

    Key format: {prefix}:{key}
    """

    def __init__(self, redis: Redis, key_prefix: str = "switchboard:toolcache") -> None:
        self._redis = redis
        self._key_prefix = key_prefix

    def _make_key(self, key: str) -> str:
        return f"{self._key_prefix}:{key}"

    async def get(self, key: str) -> dict[str, Any] | None:
        try:
            value = await self._redis.get(self._make_key(key))
        except RedisError as e:
            raise ConnectionError(f"Failed to read tool cache: {e}", cause=e) from e

        if value is None:
            return None

        value_str = value.decode() if isinstance(value, bytes) else value
        try:
            return json.loads(value_str)
        except json.JSONDecodeError:
            logger.warning("tool_cache_corrupted_value", key=key)
            return None

    async def set(self, key: str, value: dict[str, Any], ttl: int) -> None:
        try:
            await self._redis.set(self._make_key(key), json.dumps(value), ex=ttl)
        except RedisError as e:
            raise ConnectionError(f"Failed to write tool cache: {e}", cause=e) from e

    async def clear(self) -> int:
        removed = 0
        try:
            async for redis_key in self._redis.scan_iter(match=f"{self._key_prefix}:*"):
                removed += await self._redis.delete(redis_key)
        except RedisError as e:
            raise ConnectionError(f"Failed to clear tool cache: {e}", cause=e) from e

        logger.info("tool_cache_cleared", removed=removed)
        return removed
