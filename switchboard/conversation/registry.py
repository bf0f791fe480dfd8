"""ThreadRegistry: sender identifier -> conversation thread.

Threads are cached in-process, but the paused flag is always re-read from
the store so an admin pause is visible on the very next message.
"""

from typing import Any

from switchboard.conversation.models import ConversationThread
from switchboard.conversation.store import ThreadStore
from switchboard.db.errors import ConflictError, StoreError
from switchboard.errors import (
    SwitchboardError,
    ThreadCreationError,
    ThreadNotFoundError,
)
from switchboard.observability.logging import get_logger
from switchboard.runtime.mutex import KeyedMutex
from switchboard.runtime.runs.client import AssistantClient

logger = get_logger(__name__)


class ThreadRegistry:
    """Resolves, creates, pauses and deletes conversation threads.

    All operations on one identifier are serialized by a per-identifier
    lock; the cache is only written under that lock.
    """

    def __init__(
        self,
        store: ThreadStore,
        assistant: AssistantClient,
        medium: str = "whatsapp",
        mutex: KeyedMutex | None = None,
    ) -> None:
        self._store = store
        self._assistant = assistant
        self._medium = medium
        self._mutex = mutex or KeyedMutex()
        self._cache: dict[str, ConversationThread] = {}

    async def resolve(
        self,
        identifier: str,
        meta: dict[str, Any] | None = None,
    ) -> ConversationThread:
        """Return the thread for `identifier`, creating it on first contact.

        Raises:
            ThreadCreationError: The thread could not be created atomically
        """
        async with self._mutex.acquire(identifier):
            return await self._resolve_locked(identifier, meta)

    async def _resolve_locked(
        self,
        identifier: str,
        meta: dict[str, Any] | None,
    ) -> ConversationThread:
        cached = self._cache.get(identifier)
        if cached is not None:
            paused = await self._store.get_paused(identifier)
            if paused is None:
                logger.info("thread_cache_evicted", identifier=identifier, reason="deleted")
                del self._cache[identifier]
            else:
                if paused != cached.paused:
                    cached.paused = paused
                    logger.debug("thread_paused_refreshed", identifier=identifier, paused=paused)
                return cached.model_copy()

        stored = await self._store.get_by_identifier(identifier)
        if stored is not None:
            self._cache[identifier] = stored
            return stored.model_copy()

        thread = await self._create(identifier, meta)
        self._cache[identifier] = thread
        return thread.model_copy()

    async def _create(
        self,
        identifier: str,
        meta: dict[str, Any] | None,
    ) -> ConversationThread:
        metadata = {"identifier": identifier, "medium": self._medium, **(meta or {})}
        try:
            external_ref = await self._assistant.create_thread(metadata)
        except SwitchboardError as e:
            logger.error("thread_create_external_failed", identifier=identifier, error=e.message)
            raise ThreadCreationError(
                f"Could not create assistant thread for {identifier}", cause=e
            ) from e

        thread = ConversationThread(
            identifier=identifier,
            external_ref=external_ref,
            medium=self._medium,
        )
        try:
            await self._store.create(thread)
        except StoreError as e:
            logger.error(
                "thread_persist_failed",
                identifier=identifier,
                external_ref=external_ref,
                error=str(e),
            )
            await self._discard_external(external_ref)
            if isinstance(e, ConflictError):
                # Another process created it first
                existing = await self._store.get_by_identifier(identifier)
                if existing is not None:
                    return existing
            raise ThreadCreationError(
                f"Could not persist thread for {identifier}", cause=e
            ) from e

        logger.info(
            "thread_created",
            identifier=identifier,
            thread_id=str(thread.id),
            external_ref=external_ref,
        )
        return thread

    async def _discard_external(self, external_ref: str) -> None:
        try:
            await self._assistant.delete_thread(external_ref)
        except SwitchboardError as e:
            logger.warning(
                "thread_external_cleanup_failed",
                external_ref=external_ref,
                error=e.message,
            )

    async def set_paused(self, identifier: str, paused: bool) -> ConversationThread:
        """Pause or resume automated replies.

        Pausing an unknown identifier creates its thread first.

        Raises:
            ThreadNotFoundError: Resuming an identifier with no thread
            ThreadCreationError: Pausing required a creation that failed
        """
        async with self._mutex.acquire(identifier):
            if await self._store.get_by_identifier(identifier) is None:
                self._cache.pop(identifier, None)
                if not paused:
                    raise ThreadNotFoundError(f"No conversation for {identifier}")
                await self._resolve_locked(identifier, None)

            updated = await self._store.set_paused(identifier, paused)
            if updated is None:
                self._cache.pop(identifier, None)
                raise ThreadNotFoundError(f"No conversation for {identifier}")

            self._cache[identifier] = updated
            logger.info("thread_paused_changed", identifier=identifier, paused=paused)
            return updated.model_copy()

    async def get(self, identifier: str) -> ConversationThread | None:
        """Read a thread without creating it."""
        return await self._store.get_by_identifier(identifier)

    async def delete(self, identifier: str) -> bool:
        """Delete a thread and its turns; evicts the cache entry."""
        async with self._mutex.acquire(identifier):
            self._cache.pop(identifier, None)
            deleted = await self._store.delete(identifier)
        if deleted:
            logger.info("thread_deleted", identifier=identifier)
        return deleted

    async def list_threads(
        self,
        limit: int = 50,
        offset: int = 0,
        search: str | None = None,
    ) -> tuple[list[ConversationThread], int]:
        return await self._store.list_threads(limit=limit, offset=offset, search=search)

    def invalidate(self, identifier: str) -> None:
        self._cache.pop(identifier, None)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._cache
