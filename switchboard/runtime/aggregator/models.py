"""Aggregator models."""

from enum import Enum

from pydantic import BaseModel, Field


class FlushReason(str, Enum):
    """Why a pending aggregate was emitted."""

    WINDOW = "window"  # debounce window expired
    MEDIA = "media"  # media arrived for the same sender
    FORCED = "forced"  # explicit flush()
    SHUTDOWN = "shutdown"


class PendingAggregate(BaseModel):
    """Fragments buffered for one sender inside the debounce window.

    `generation` increases with every fragment; a timer only flushes the
    aggregate if the generation it was scheduled for is still current.
    """

    sender: str
    fragments: list[str] = Field(default_factory=list, description="Arrival order")
    first_at: float = Field(..., description="Clock time of the first fragment")
    deadline: float = Field(..., description="Clock time the window closes")
    generation: int = 0

    def add(self, text: str, deadline: float) -> int:
        self.fragments.append(text)
        self.deadline = deadline
        self.generation += 1
        return self.generation

    def text(self, delimiter: str = " ") -> str:
        return delimiter.join(self.fragments)
