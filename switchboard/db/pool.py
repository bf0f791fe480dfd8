"""PostgreSQL connection pool management.

One pool is shared by the thread store and the delivery consumer.
"""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg

from switchboard.config.models.storage import PostgresConfig
from switchboard.db.errors import ConnectionError
from switchboard.observability.logging import get_logger

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS threads (
    id UUID PRIMARY KEY,
    identifier TEXT NOT NULL UNIQUE,
    external_ref TEXT NOT NULL,
    medium TEXT NOT NULL DEFAULT 'whatsapp',
    paused BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS turns (
    id UUID PRIMARY KEY,
    thread_id UUID NOT NULL REFERENCES threads (id) ON DELETE CASCADE,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL,
    dedupe_key TEXT NOT NULL UNIQUE
);

CREATE INDEX IF NOT EXISTS turns_thread_created_idx ON turns (thread_id, created_at);

CREATE TABLE IF NOT EXISTS authorized_senders (
    sender TEXT PRIMARY KEY,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

DSN_ENV_VARS = ("SWITCHBOARD_DATABASE_URL", "DATABASE_URL")
DSN_PART_DEFAULTS = {
    "user": "switchboard",
    "password": "switchboard",
    "host": "localhost",
    "port": "5432",
    "db": "switchboard",
}


class PostgresPool:
    """Lazily connected asyncpg pool with schema bootstrap and health probe.

    `acquire()` connects on first use, so stores can be built before the
    database is reachable; `Switchboard.start()` connects eagerly.
    """

    def __init__(
        self,
        dsn: str | None = None,
        min_size: int = 1,
        max_size: int = 5,
        command_timeout: float = 30.0,
    ) -> None:
        self._dsn = dsn or self._get_dsn_from_env()
        self._min_size = min_size
        self._max_size = max_size
        self._command_timeout = command_timeout
        self._pool: asyncpg.Pool | None = None

    @classmethod
    def from_config(cls, config: PostgresConfig) -> "PostgresPool":
        return cls(
            dsn=config.dsn,
            min_size=config.min_pool_size,
            max_size=config.max_pool_size,
            command_timeout=config.command_timeout,
        )

    @staticmethod
    def _get_dsn_from_env() -> str:
        """SWITCHBOARD_DATABASE_URL, then DATABASE_URL, then the POSTGRES_* parts."""
        for name in DSN_ENV_VARS:
            if os.environ.get(name):
                return os.environ[name]

        parts = {
            key: os.environ.get(f"POSTGRES_{key.upper()}", default)
            for key, default in DSN_PART_DEFAULTS.items()
        }
        return "postgresql://{user}:{password}@{host}:{port}/{db}".format(**parts)

    async def connect(self) -> None:
        """Open the pool; a no-op when already open."""
        if self._pool is not None:
            return

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self._dsn,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=self._command_timeout,
            )
            logger.info(
                "postgres_pool_connected",
                min_size=self._min_size,
                max_size=self._max_size,
            )
        except (OSError, asyncpg.PostgresError) as e:
            logger.error("postgres_pool_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to PostgreSQL: {e}", cause=e) from e

    async def ensure_schema(self) -> None:
        """Create the threads, turns and authorized_senders tables if missing."""
        async with self.acquire() as conn:
            await conn.execute(SCHEMA)
        logger.info("postgres_schema_ready")

    async def close(self) -> None:
        """Release every pooled connection."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("postgres_pool_closed")

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection, connecting lazily on first use."""
        if self._pool is None:
            await self.connect()

        try:
            async with self._pool.acquire() as connection:
                yield connection
        except (OSError, asyncpg.InterfaceError) as e:
            logger.error("postgres_connection_error", error=str(e))
            raise ConnectionError(f"PostgreSQL connection error: {e}", cause=e) from e

    async def health_check(self) -> bool:
        """Return True if the pool is connected and responsive."""
        if self._pool is None:
            return False

        try:
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except (OSError, asyncpg.PostgresError) as e:
            logger.warning("postgres_health_check_failed", error=str(e))
            return False

    @property
    def is_connected(self) -> bool:
        return self._pool is not None
