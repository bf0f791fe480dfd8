"""Tool dispatch models.

Every tool call resolves to a ToolResult envelope; the assistant receives
it JSON-encoded as the call's output.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ToolErrorCode(str, Enum):
    """Error codes carried in failed envelopes."""

    FUNCTION_EXECUTION_ERROR = "FUNCTION_EXECUTION_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    CLIENT_ERROR = "CLIENT_ERROR"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"


class ToolError(BaseModel):
    message: str
    code: ToolErrorCode


class ToolResult(BaseModel):
    """Uniform outcome of one tool call."""

    success: bool
    status: int | None = Field(default=None, description="HTTP status when a response arrived")
    data: Any = None
    error: ToolError | None = None
    cached: bool = Field(default=False, exclude=True)

    @classmethod
    def ok(cls, status: int, data: Any, cached: bool = False) -> "ToolResult":
        return cls(success=True, status=status, data=data, cached=cached)

    @classmethod
    def fail(
        cls,
        code: ToolErrorCode,
        message: str,
        status: int | None = None,
    ) -> "ToolResult":
        return cls(success=False, status=status, error=ToolError(message=message, code=code))

    def to_output(self) -> str:
        """JSON encoding submitted back to the assistant."""
        return self.model_dump_json(exclude_none=True)


class ResolvedEndpoint(BaseModel):
    """Where and how a function call is sent."""

    path: str
    method: str
    url: str
    arguments: dict[str, Any] = Field(default_factory=dict)
