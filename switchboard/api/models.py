"""Request and response models for the admin API."""

from datetime import datetime
from enum import Enum
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from switchboard.conversation.models import (
    ConversationThread,
    ThreadStats,
    Turn,
    TurnMatch,
    TurnRole,
)


class ErrorCode(str, Enum):
    """Machine-readable error codes for API responses."""

    INVALID_REQUEST = "INVALID_REQUEST"
    CONVERSATION_NOT_FOUND = "CONVERSATION_NOT_FOUND"
    CONVERSATION_EXISTS = "CONVERSATION_EXISTS"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorDetail(BaseModel):
    field: str | None = None
    message: str


class ErrorBody(BaseModel):
    code: ErrorCode
    message: str
    details: list[ErrorDetail] | None = None


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    success: Literal[False] = False
    error: ErrorBody


class ConversationSummary(BaseModel):
    id: UUID
    identifier: str
    external_ref: str
    medium: str
    paused: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_thread(cls, thread: ConversationThread) -> "ConversationSummary":
        return cls.model_validate(thread.model_dump())


class TurnResponse(BaseModel):
    id: UUID
    role: TurnRole
    content: str
    created_at: datetime

    @classmethod
    def from_turn(cls, turn: Turn) -> "TurnResponse":
        return cls(id=turn.id, role=turn.role, content=turn.content, created_at=turn.created_at)


class TurnMatchResponse(TurnResponse):
    thread_id: UUID
    identifier: str
    medium: str
    paused: bool

    @classmethod
    def from_match(cls, match: TurnMatch) -> "TurnMatchResponse":
        turn = match.turn
        return cls(
            id=turn.id,
            role=turn.role,
            content=turn.content,
            created_at=turn.created_at,
            thread_id=turn.thread_id,
            identifier=match.identifier,
            medium=match.medium,
            paused=match.paused,
        )


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class ConversationListResponse(BaseModel):
    success: Literal[True] = True
    data: list[ConversationSummary]
    pagination: Pagination


class TurnSearchPage(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int
    messages: list[TurnMatchResponse]


class TurnSearchResponse(BaseModel):
    success: Literal[True] = True
    data: TurnSearchPage


class ConversationDetailResponse(BaseModel):
    success: Literal[True] = True
    data: ConversationSummary
    turns: list[TurnResponse]


class ConversationResponse(BaseModel):
    success: Literal[True] = True
    message: str | None = None
    data: ConversationSummary


class ConversationStatus(BaseModel):
    identifier: str
    paused: bool
    status: Literal["paused", "active"]
    updated_at: datetime


class ConversationStatusResponse(BaseModel):
    success: Literal[True] = True
    data: ConversationStatus


class CreateConversationRequest(BaseModel):
    identifier: str = Field(..., min_length=1, description="Transport sender id")
    paused: bool = False


class AddTurnRequest(BaseModel):
    role: TurnRole
    content: str = Field(..., min_length=1)


class TurnCreatedResponse(BaseModel):
    success: Literal[True] = True
    data: TurnResponse
    duplicate: bool = False


class DeleteResponse(BaseModel):
    success: Literal[True] = True
    message: str


class StatsResponse(BaseModel):
    success: Literal[True] = True
    data: ThreadStats


class ComponentHealth(BaseModel):
    name: str
    status: Literal["healthy", "unhealthy"]
    message: str | None = None


class HealthResponse(BaseModel):
    status: Literal["healthy", "degraded"]
    version: str
    components: list[ComponentHealth] = Field(default_factory=list)
