"""Assistant run lifecycle."""

from switchboard.runtime.runs.client import AssistantClient, OpenAIAssistantClient
from switchboard.runtime.runs.models import (
    NO_USABLE_RESPONSE,
    RunParameters,
    RunState,
    RunStatus,
    ToolCallRequest,
    ToolOutput,
)
from switchboard.runtime.runs.scheduler import RunScheduler

__all__ = [
    "NO_USABLE_RESPONSE",
    "AssistantClient",
    "OpenAIAssistantClient",
    "RunParameters",
    "RunScheduler",
    "RunState",
    "RunStatus",
    "ToolCallRequest",
    "ToolOutput",
]
