"""Storage backend configuration models."""

from typing import Literal

from pydantic import BaseModel, Field

BackendType = Literal["inmemory", "postgres"]
QueueBackendType = Literal["inmemory", "redis"]


class PostgresConfig(BaseModel):
    """PostgreSQL connection pool configuration."""

    dsn: str | None = Field(
        default=None,
        description="Connection string (falls back to DATABASE_URL)",
    )
    min_pool_size: int = Field(default=1, gt=0, description="Minimum pooled connections")
    max_pool_size: int = Field(default=5, gt=0, description="Maximum pooled connections")
    command_timeout: float = Field(
        default=30.0, gt=0, description="Default timeout for queries (seconds)"
    )


class RedisConfig(BaseModel):
    """Redis connection and key configuration."""

    url: str = Field(default="redis://localhost:6379/0", description="Redis URL")
    queue_key: str = Field(
        default="switchboard:turns", description="List key of the turn queue"
    )
    cache_prefix: str = Field(
        default="switchboard:toolcache",
        description="Key prefix for cached tool responses",
    )


class StorageConfig(BaseModel):
    """Backends for the thread store, turn queue and response cache."""

    backend: BackendType = Field(default="inmemory", description="Thread/turn store")
    queue_backend: QueueBackendType = Field(
        default="inmemory", description="Durable turn queue"
    )
    cache_backend: QueueBackendType = Field(
        default="inmemory", description="Tool response cache"
    )
    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
