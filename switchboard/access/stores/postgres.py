"""PostgreSQL implementation of SenderStore.

The `authorized_senders` table is created by `PostgresPool.ensure_schema()`.
"""

import asyncpg

from switchboard.access.store import SenderStore
from switchboard.db.errors import ConnectionError
from switchboard.db.pool import PostgresPool
from switchboard.observability.logging import get_logger

logger = get_logger(__name__)


class PostgresSenderStore(SenderStore):
    """PostgreSQL implementation of SenderStore."""

    def __init__(self, pool: PostgresPool) -> None:
        self._pool = pool

    async def list_senders(self) -> set[str]:
        try:
            async with self._pool.acquire() as conn:
                rows = await conn.fetch("SELECT sender FROM authorized_senders")
        except asyncpg.PostgresError as e:
            logger.error("postgres_list_senders_error", error=str(e))
            raise ConnectionError(f"Failed to list authorized senders: {e}", cause=e) from e
        return {row["sender"] for row in rows}

    async def add(self, sender: str) -> bool:
        try:
            async with self._pool.acquire() as conn:
                result = await conn.execute(
                    """
                    INSERT INTO authorized_senders (sender) VALUES ($1)
                    ON CONFLICT (sender) DO NOTHING
                    """,
                    sender,
                )
        except asyncpg.PostgresError as e:
            logger.error("postgres_add_sender_error", sender=sender, error=str(e))
            raise ConnectionError(f"Failed to authorize sender: {e}", cause=e) from e
        return result.split()[-1] == "1"

    async def remove(self, sender: str) -> bool:
        try:
            async with self._pool.acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM authorized_senders WHERE sender = $1",
                    sender,
                )
        except asyncpg.PostgresError as e:
            logger.error("postgres_remove_sender_error", sender=sender, error=str(e))
            raise ConnectionError(f"Failed to revoke sender: {e}", cause=e) from e
        return result.split()[-1] == "1"
