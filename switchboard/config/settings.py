"""Root settings model for Switchboard configuration."""

from typing import Any

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from switchboard.config.models.access import AccessConfig
from switchboard.config.models.aggregator import AggregatorConfig
from switchboard.config.models.assistant import AssistantConfig
from switchboard.config.models.delivery import DeliveryConfig
from switchboard.config.models.observability import ObservabilityConfig
from switchboard.config.models.storage import StorageConfig
from switchboard.config.models.tools import ToolsConfig

# Merged TOML layers, installed by get_settings() before Settings() is built
_toml_layer: dict[str, Any] = {}


def set_toml_config(config: dict[str, Any]) -> None:
    global _toml_layer
    _toml_layer = dict(config)


class TomlLayerSource(PydanticBaseSettingsSource):
    """Lowest-priority source: values from config/*.toml."""

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:  # noqa: ARG002
        if field_name not in _toml_layer:
            return None, field_name, False
        return _toml_layer[field_name], field_name, False

    def __call__(self) -> dict[str, Any]:
        return {key: value for key, value in _toml_layer.items() if value is not None}


class Settings(BaseSettings):
    """Root configuration object.

    Configuration is loaded in this order:
    1. Pydantic model defaults (in code)
    2. config/default.toml
    3. config/{SWITCHBOARD_ENV}.toml
    4. SWITCHBOARD_* environment variables (e.g. SWITCHBOARD_TOOLS__BASE_URL)
    """

    model_config = SettingsConfigDict(
        env_prefix="SWITCHBOARD_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="switchboard", description="Application name for logging")
    debug: bool = Field(default=False, description="Enable debug mode")

    aggregator: AggregatorConfig = Field(
        default_factory=AggregatorConfig,
        description="Message debouncing configuration",
    )
    assistant: AssistantConfig = Field(
        default_factory=AssistantConfig,
        description="Assistant service and run polling configuration",
    )
    tools: ToolsConfig = Field(
        default_factory=ToolsConfig,
        description="Tool-call dispatch configuration",
    )
    storage: StorageConfig = Field(
        default_factory=StorageConfig,
        description="Persistence, queue and cache backends",
    )
    delivery: DeliveryConfig = Field(
        default_factory=DeliveryConfig,
        description="Audit delivery queue configuration",
    )
    access: AccessConfig = Field(
        default_factory=AccessConfig,
        description="Inbound sender allowlist",
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Logging configuration",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Constructor arguments, then environment, then TOML."""
        return (
            init_settings,
            env_settings,
            TomlLayerSource(settings_cls),
        )
