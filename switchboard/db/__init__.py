"""Database infrastructure: PostgreSQL pool, schema and store errors."""

from switchboard.db.errors import ConflictError, ConnectionError, NotFoundError, StoreError
from switchboard.db.pool import PostgresPool

__all__ = [
    "ConflictError",
    "ConnectionError",
    "NotFoundError",
    "PostgresPool",
    "StoreError",
]
