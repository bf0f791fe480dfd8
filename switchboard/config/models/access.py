"""Inbound sender allowlist configuration."""

from pydantic import BaseModel, Field


class AccessConfig(BaseModel):
    """Which senders may reach the assistant.

    Disabled by default: every sender is served.
    """

    enabled: bool = Field(default=False, description="Only serve authorized senders")
    senders: list[str] = Field(
        default_factory=list,
        description="Senders always authorized, independent of the store",
    )
    reload_interval_seconds: float = Field(
        default=300.0,
        gt=0,
        description="How often the authorized set is re-read from the store",
    )
    add_command: str = Field(default="!add", description="Command prefix that authorizes a sender")
    remove_command: str = Field(
        default="!remove", description="Command prefix that revokes a sender"
    )
