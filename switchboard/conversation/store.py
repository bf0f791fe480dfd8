"""ThreadStore abstract interface for conversation persistence."""

from abc import ABC, abstractmethod
from uuid import UUID

from switchboard.conversation.models import ConversationThread, ThreadStats, Turn, TurnMatch


class ThreadStore(ABC):
    """Abstract interface for thread and turn storage.

    Threads are unique per identifier. Turns are append-only and
    deduplicated on `Turn.dedupe_key`; deleting a thread deletes its turns.
    """

    @abstractmethod
    async def get_by_identifier(self, identifier: str) -> ConversationThread | None:
        """Get a thread by sender identifier.

        Args:
            identifier: Transport sender id

        Returns:
            Thread if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_paused(self, identifier: str) -> bool | None:
        """Read only the paused flag.

        Returns:
            The flag, or None if the thread no longer exists
        """
        pass

    @abstractmethod
    async def create(self, thread: ConversationThread) -> ConversationThread:
        """Persist a new thread.

        Raises:
            ConflictError: If the identifier is already bound
        """
        pass

    @abstractmethod
    async def set_paused(self, identifier: str, paused: bool) -> ConversationThread | None:
        """Update the paused flag.

        Returns:
            The updated thread, or None if it does not exist
        """
        pass

    @abstractmethod
    async def delete(self, identifier: str) -> bool:
        """Delete a thread and all of its turns.

        Returns:
            True if a thread was deleted
        """
        pass

    @abstractmethod
    async def append_turn(self, turn: Turn) -> bool:
        """Append a turn unless one with the same dedupe key exists.

        Returns:
            True if the turn was written, False if it was a duplicate

        Raises:
            NotFoundError: If the turn's thread does not exist
        """
        pass

    @abstractmethod
    async def list_turns(self, thread_id: UUID, limit: int | None = None) -> list[Turn]:
        """List turns of a thread, oldest first."""
        pass

    @abstractmethod
    async def list_threads(
        self,
        limit: int = 50,
        offset: int = 0,
        search: str | None = None,
    ) -> tuple[list[ConversationThread], int]:
        """List threads, most recently updated first.

        Args:
            limit: Page size
            offset: Rows to skip
            search: Case-insensitive substring filter on the identifier

        Returns:
            Tuple of (page, total matching)
        """
        pass

    @abstractmethod
    async def search_turns(
        self,
        query: str,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[TurnMatch], int]:
        """Find turns across all threads, newest first.

        Args:
            query: Case-insensitive substring matched against turn content
            limit: Page size
            offset: Rows to skip

        Returns:
            Tuple of (page, total matching)
        """
        pass

    @abstractmethod
    async def stats(self) -> ThreadStats:
        """Compute aggregate thread and turn counts."""
        pass
