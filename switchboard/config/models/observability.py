"""Logging configuration."""

from typing import Literal

from pydantic import BaseModel, Field

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class ObservabilityConfig(BaseModel):
    """Structured logging settings."""

    log_level: LogLevel = Field(default="INFO", description="Minimum log level")
    log_format: Literal["json", "console"] = Field(
        default="json", description="Renderer for log lines"
    )
    redact_pii: bool = Field(default=True, description="Redact secrets and PII")
