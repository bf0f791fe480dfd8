"""Assistant run models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

NO_USABLE_RESPONSE = "Sorry, I couldn't come up with a response. Please try again."


class RunStatus(str, Enum):
    """Status values reported by the assistant service for a run."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    INCOMPLETE = "incomplete"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        RunStatus.COMPLETED,
        RunStatus.FAILED,
        RunStatus.CANCELLED,
        RunStatus.EXPIRED,
        RunStatus.INCOMPLETE,
    }
)


class ToolCallRequest(BaseModel):
    """One function call the assistant asked for."""

    call_id: str = Field(..., description="Identifier echoed back with the output")
    function_name: str
    arguments: str = Field(default="{}", description="Raw JSON arguments")


class ToolOutput(BaseModel):
    """Result for one tool call, submitted back to the run."""

    call_id: str
    output: str = Field(..., description="JSON-encoded ToolResult envelope")


class RunState(BaseModel):
    """Snapshot of a run as last observed."""

    thread_ref: str
    run_id: str
    status: RunStatus
    tool_calls: list[ToolCallRequest] = Field(default_factory=list)
    last_error: str | None = None


class AssistantMessage(BaseModel):
    """A message read back from an assistant thread."""

    id: str
    role: str
    run_id: str | None = None
    text: str = ""
    created_at: datetime | None = None


class RunParameters(BaseModel):
    """Per-run overrides sent when creating a run."""

    assistant_id: str
    model: str | None = None
    instructions: str | None = None
    additional_instructions: str | None = None
    tools: list[dict[str, Any]] = Field(default_factory=list)
