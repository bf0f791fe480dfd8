"""Store error hierarchy.

Thread stores, turn queues and response caches wrap backend exceptions
(asyncpg, redis) in these types so callers never import driver errors.
"""


class StoreError(Exception):
    """Base exception for all persistence errors."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConnectionError(StoreError):
    """Raised when a backend is unreachable or a query fails.

    Examples:
        - PostgreSQL pool cannot connect
        - Redis server unavailable
    """

    pass


class NotFoundError(StoreError):
    """Raised when a write targets a thread that does not exist."""

    pass


class ConflictError(StoreError):
    """Raised when a thread identifier is already taken."""

    pass
