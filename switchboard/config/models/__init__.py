"""Configuration section models."""

from switchboard.config.models.access import AccessConfig
from switchboard.config.models.aggregator import AggregatorConfig
from switchboard.config.models.assistant import AssistantConfig
from switchboard.config.models.delivery import DeliveryConfig
from switchboard.config.models.observability import ObservabilityConfig
from switchboard.config.models.storage import PostgresConfig, RedisConfig, StorageConfig
from switchboard.config.models.tools import (
    AuthConfig,
    AuthScheme,
    EndpointOverride,
    ToolsConfig,
)

__all__ = [
    "AccessConfig",
    "AggregatorConfig",
    "AssistantConfig",
    "AuthConfig",
    "AuthScheme",
    "DeliveryConfig",
    "EndpointOverride",
    "ObservabilityConfig",
    "PostgresConfig",
    "RedisConfig",
    "StorageConfig",
    "ToolsConfig",
]
