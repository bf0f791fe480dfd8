"""PostgreSQL implementation of ThreadStore.

Tables are created by `PostgresPool.ensure_schema()`. Turn deduplication
relies on the unique `dedupe_key` column.
"""

from typing import Any
from uuid import UUID

import asyncpg

from switchboard.conversation.models import ConversationThread, ThreadStats, Turn, TurnMatch
from switchboard.conversation.store import ThreadStore
from switchboard.db.errors import ConflictError, ConnectionError, NotFoundError
from switchboard.db.pool import PostgresPool
from switchboard.observability.logging import get_logger

logger = get_logger(__name__)

_THREAD_COLUMNS = "id, identifier, external_ref, medium, paused, created_at, updated_at"


class PostgresThreadStore(ThreadStore):
    """PostgreSQL implementation of ThreadStore."""

    def __init__(self, pool: PostgresPool) -> None:
        """Initialize PostgreSQL thread store.

        Args:
            pool: Shared connection pool
        """
        self._pool = pool

    @staticmethod
    def _row_to_thread(row: Any) -> ConversationThread:
        return ConversationThread.model_validate(dict(row))

    async def get_by_identifier(self, identifier: str) -> ConversationThread | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT {_THREAD_COLUMNS} FROM threads WHERE identifier = $1",
                    identifier,
                )
        except asyncpg.PostgresError as e:
            logger.error("postgres_get_thread_error", identifier=identifier, error=str(e))
            raise ConnectionError(f"Failed to get thread: {e}", cause=e) from e

        if row is None:
            logger.debug("thread_not_found", identifier=identifier)
            return None
        return self._row_to_thread(row)

    async def get_paused(self, identifier: str) -> bool | None:
        try:
            async with self._pool.acquire() as conn:
                return await conn.fetchval(
                    "SELECT paused FROM threads WHERE identifier = $1",
                    identifier,
                )
        except asyncpg.PostgresError as e:
            logger.error("postgres_get_paused_error", identifier=identifier, error=str(e))
            raise ConnectionError(f"Failed to read paused flag: {e}", cause=e) from e

    async def create(self, thread: ConversationThread) -> ConversationThread:
        try:
            async with self._pool.acquire() as conn:
                await conn.execute(
                    f"""
                    INSERT INTO threads ({_THREAD_COLUMNS})
                    VALUES ($1, $2, $3, $4, $5, $6, $7)
                    """,
                    thread.id,
                    thread.identifier,
                    thread.external_ref,
                    thread.medium,
                    thread.paused,
                    thread.created_at,
                    thread.updated_at,
                )
        except asyncpg.UniqueViolationError as e:
            raise ConflictError(
                f"Thread already exists for {thread.identifier}", cause=e
            ) from e
        except asyncpg.PostgresError as e:
            logger.error(
                "postgres_create_thread_error",
                identifier=thread.identifier,
                error=str(e),
            )
            raise ConnectionError(f"Failed to create thread: {e}", cause=e) from e

        logger.info(
            "thread_saved",
            thread_id=str(thread.id),
            external_ref=thread.external_ref,
        )
        return thread

    async def set_paused(self, identifier: str, paused: bool) -> ConversationThread | None:
        try:
            async with self._pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    UPDATE threads SET paused = $2, updated_at = now()
                    WHERE identifier = $1
                    RETURNING {_THREAD_COLUMNS}
                    """,
                    identifier,
                    paused,
                )
        except asyncpg.PostgresError as e:
            logger.error("postgres_set_paused_error", identifier=identifier, error=str(e))
            raise ConnectionError(f"Failed to update thread: {e}", cause=e) from e

        return self._row_to_thread(row) if row else None

    async def delete(self, identifier: str) -> bool:
        try:
            async with self._pool.acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM threads WHERE identifier = $1",
                    identifier,
                )
        except asyncpg.PostgresError as e:
            logger.error("postgres_delete_thread_error", identifier=identifier, error=str(e))
            raise ConnectionError(f"Failed to delete thread: {e}", cause=e) from e

        deleted = result.split()[-1] == "1"
        logger.info("thread_deleted", deleted=deleted)
        return deleted

    async def append_turn(self, turn: Turn) -> bool:
        try:
            async with self._pool.acquire() as conn:
                async with conn.transaction():
                    result = await conn.execute(
                        """
                        INSERT INTO turns (id, thread_id, role, content, created_at, dedupe_key)
                        VALUES ($1, $2, $3, $4, $5, $6)
                        ON CONFLICT (dedupe_key) DO NOTHING
                        """,
                        turn.id,
                        turn.thread_id,
                        turn.role.value,
                        turn.content,
                        turn.created_at,
                        turn.dedupe_key,
                    )
                    written = result.split()[-1] == "1"
                    if written:
                        await conn.execute(
                            "UPDATE threads SET updated_at = now() WHERE id = $1",
                            turn.thread_id,
                        )
        except asyncpg.ForeignKeyViolationError as e:
            raise NotFoundError(f"Thread {turn.thread_id} not found", cause=e) from e
        except asyncpg.PostgresError as e:
            logger.error(
                "postgres_append_turn_error",
                thread_id=str(turn.thread_id),
                error=str(e),
            )
            raise ConnectionError(f"Failed to append turn: {e}", cause=e) from e

        return written

    async def list_turns(self, thread_id: UUID, limit: int | None = None) -> list[Turn]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT id, thread_id, role, content, created_at FROM turns
                    WHERE thread_id = $1
                    ORDER BY created_at ASC
                    LIMIT $2
                    """,
                    thread_id,
                    limit,
                )
        except asyncpg.PostgresError as e:
            logger.error("postgres_list_turns_error", thread_id=str(thread_id), error=str(e))
            raise ConnectionError(f"Failed to list turns: {e}", cause=e) from e

        return [Turn.model_validate(dict(row)) for row in rows]

    async def list_threads(
        self,
        limit: int = 50,
        offset: int = 0,
        search: str | None = None,
    ) -> tuple[list[ConversationThread], int]:
        pattern = f"%{search}%" if search else None
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    f"""
                    SELECT {_THREAD_COLUMNS} FROM threads
                    WHERE $1::text IS NULL OR identifier ILIKE $1
                    ORDER BY updated_at DESC
                    LIMIT $2 OFFSET $3
                    """,
                    pattern,
                    limit,
                    offset,
                )
                total = await conn.fetchval(
                    "SELECT count(*) FROM threads WHERE $1::text IS NULL OR identifier ILIKE $1",
                    pattern,
                )
        except asyncpg.PostgresError as e:
            logger.error("postgres_list_threads_error", error=str(e))
            raise ConnectionError(f"Failed to list threads: {e}", cause=e) from e

        return [self._row_to_thread(row) for row in rows], total

    async def search_turns(
        self,
        query: str,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[TurnMatch], int]:
        pattern = f"%{query}%"
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch(
                    """
                    SELECT t.id, t.thread_id, t.role, t.content, t.created_at,
                           th.identifier, th.medium, th.paused
                    FROM turns t
                    JOIN threads th ON th.id = t.thread_id
                    WHERE t.content ILIKE $1
                    ORDER BY t.created_at DESC
                    LIMIT $2 OFFSET $3
                    """,
                    pattern,
                    limit,
                    offset,
                )
                total = await conn.fetchval(
                    "SELECT count(*) FROM turns WHERE content ILIKE $1",
                    pattern,
                )
        except asyncpg.PostgresError as e:
            logger.error("postgres_search_turns_error", error=str(e))
            raise ConnectionError(f"Failed to search turns: {e}", cause=e) from e

        return [
            TurnMatch(
                turn=Turn(
                    id=row["id"],
                    thread_id=row["thread_id"],
                    role=row["role"],
                    content=row["content"],
                    created_at=row["created_at"],
                ),
                identifier=row["identifier"],
                medium=row["medium"],
                paused=row["paused"],
            )
            for row in rows
        ], total

    async def stats(self) -> ThreadStats:
        try:
            async with self._pool.acquire() as conn:
                threads = await conn.fetchrow(
                    """
                    SELECT count(*) AS total,
                           count(*) FILTER (WHERE paused) AS paused
                    FROM threads
                    """
                )
                turns = await conn.fetchrow(
                    """
                    SELECT count(*) AS total,
                           count(*) FILTER (WHERE role = 'user') AS user_turns
                    FROM turns
                    """
                )
        except asyncpg.PostgresError as e:
            logger.error("postgres_stats_error", error=str(e))
            raise ConnectionError(f"Failed to compute stats: {e}", cause=e) from e

        return ThreadStats(
            total_threads=threads["total"],
            paused_threads=threads["paused"],
            active_threads=threads["total"] - threads["paused"],
            total_turns=turns["total"],
            user_turns=turns["user_turns"],
            assistant_turns=turns["total"] - turns["user_turns"],
        )
