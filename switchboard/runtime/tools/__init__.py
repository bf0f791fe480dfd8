"""Tool-call dispatch to the external business API."""

from switchboard.runtime.tools.cache import (
    InMemoryResponseCache,
    RedisResponseCache,
    ResponseCache,
)
from switchboard.runtime.tools.dispatcher import ToolDispatcher
from switchboard.runtime.tools.models import ToolErrorCode, ToolResult

__all__ = [
    "InMemoryResponseCache",
    "RedisResponseCache",
    "ResponseCache",
    "ToolDispatcher",
    "ToolErrorCode",
    "ToolResult",
]
