"""In-memory implementation of ThreadStore."""

from uuid import UUID

from switchboard.conversation.models import (
    ConversationThread,
    ThreadStats,
    Turn,
    TurnMatch,
    TurnRole,
    utc_now,
)
from switchboard.conversation.store import ThreadStore
from switchboard.db.errors import ConflictError, NotFoundError


class InMemoryThreadStore(ThreadStore):
    """In-memory implementation of ThreadStore for testing and development.

    Uses dict storage with linear scans for queries.
    Not suitable for production use.
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._threads: dict[str, ConversationThread] = {}
        self._turns: dict[UUID, list[Turn]] = {}
        self._dedupe_keys: set[str] = set()

    async def get_by_identifier(self, identifier: str) -> ConversationThread | None:
        thread = self._threads.get(identifier)
        return thread.model_copy() if thread else None

    async def get_paused(self, identifier: str) -> bool | None:
        thread = self._threads.get(identifier)
        return thread.paused if thread else None

    async def create(self, thread: ConversationThread) -> ConversationThread:
        if thread.identifier in self._threads:
            raise ConflictError(f"Thread already exists for {thread.identifier}")
        self._threads[thread.identifier] = thread.model_copy()
        self._turns[thread.id] = []
        return thread

    async def set_paused(self, identifier: str, paused: bool) -> ConversationThread | None:
        thread = self._threads.get(identifier)
        if thread is None:
            return None
        thread.paused = paused
        thread.updated_at = utc_now()
        return thread.model_copy()

    async def delete(self, identifier: str) -> bool:
        thread = self._threads.pop(identifier, None)
        if thread is None:
            return False
        for turn in self._turns.pop(thread.id, []):
            self._dedupe_keys.discard(turn.dedupe_key)
        return True

    async def append_turn(self, turn: Turn) -> bool:
        if turn.thread_id not in self._turns:
            raise NotFoundError(f"Thread {turn.thread_id} not found")
        key = turn.dedupe_key
        if key in self._dedupe_keys:
            return False
        self._dedupe_keys.add(key)
        self._turns[turn.thread_id].append(turn)
        for thread in self._threads.values():
            if thread.id == turn.thread_id:
                thread.updated_at = utc_now()
                break
        return True

    async def list_turns(self, thread_id: UUID, limit: int | None = None) -> list[Turn]:
        turns = sorted(self._turns.get(thread_id, []), key=lambda t: t.created_at)
        return turns[:limit] if limit is not None else turns

    async def list_threads(
        self,
        limit: int = 50,
        offset: int = 0,
        search: str | None = None,
    ) -> tuple[list[ConversationThread], int]:
        threads = list(self._threads.values())
        if search:
            needle = search.lower()
            threads = [t for t in threads if needle in t.identifier.lower()]

        threads.sort(key=lambda t: t.updated_at, reverse=True)
        page = [t.model_copy() for t in threads[offset : offset + limit]]
        return page, len(threads)

    async def search_turns(
        self,
        query: str,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[TurnMatch], int]:
        needle = query.lower()
        matches = [
            TurnMatch(
                turn=turn,
                identifier=thread.identifier,
                medium=thread.medium,
                paused=thread.paused,
            )
            for thread in self._threads.values()
            for turn in self._turns.get(thread.id, [])
            if needle in turn.content.lower()
        ]
        matches.sort(key=lambda m: m.turn.created_at, reverse=True)
        return matches[offset : offset + limit], len(matches)

    async def stats(self) -> ThreadStats:
        all_turns = [turn for turns in self._turns.values() for turn in turns]
        paused = sum(1 for t in self._threads.values() if t.paused)
        user = sum(1 for t in all_turns if t.role == TurnRole.USER)
        return ThreadStats(
            total_threads=len(self._threads),
            paused_threads=paused,
            active_threads=len(self._threads) - paused,
            total_turns=len(all_turns),
            user_turns=user,
            assistant_turns=len(all_turns) - user,
        )
