"""Audit delivery queue configuration."""

from pydantic import BaseModel, Field


class DeliveryConfig(BaseModel):
    """Consumer loop settings for the durable turn queue."""

    block_timeout_seconds: float = Field(
        default=5.0, gt=0, description="Bounded wait for one blocking pop"
    )
    error_backoff_seconds: float = Field(
        default=1.0, ge=0, description="Pause after a failed consumer iteration"
    )
