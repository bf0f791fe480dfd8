"""Assistant service configuration."""

from typing import Any

from pydantic import BaseModel, Field, SecretStr


class AssistantConfig(BaseModel):
    """Assistant credentials, run parameters and polling policy.

    Note: api_key should come from SWITCHBOARD_ASSISTANT__API_KEY or
    OPENAI_API_KEY, not from committed config files.
    """

    api_key: SecretStr | None = Field(default=None, description="Assistant API key")
    assistant_id: str | None = Field(default=None, description="Assistant identifier")
    model: str | None = Field(default=None, description="Model override for runs")
    instructions: str | None = Field(
        default=None, description="Run-level instructions override"
    )
    additional_instructions: str | None = Field(
        default=None, description="Instructions appended to the assistant's own"
    )
    tools: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Function tool definitions sent with each run",
    )
    medium: str = Field(
        default="whatsapp", description="Medium recorded in thread metadata"
    )
    request_timeout_seconds: float = Field(
        default=60.0, gt=0, description="Timeout for assistant API requests"
    )
    poll_interval_seconds: float = Field(
        default=0.5, gt=0, description="Delay between run status polls"
    )
    max_poll_retries: int = Field(
        default=3, ge=0, description="Retries for a failing status poll"
    )
    backoff_base_seconds: float = Field(
        default=0.5, ge=0, description="Base delay for poll retry backoff"
    )
    run_timeout_seconds: float | None = Field(
        default=120.0,
        gt=0,
        description="Wall-clock limit for one run; None disables",
    )
