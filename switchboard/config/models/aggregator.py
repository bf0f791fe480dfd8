"""Message aggregator configuration."""

from pydantic import BaseModel, Field


class AggregatorConfig(BaseModel):
    """Debounce window for coalescing message fragments."""

    window_ms: int = Field(
        default=3000,
        ge=0,
        description="Sliding debounce window in milliseconds",
    )
    delimiter: str = Field(
        default=" ",
        description="Separator placed between buffered fragments",
    )

    @property
    def window_seconds(self) -> float:
        return self.window_ms / 1000
