"""Conversation domain models.

A ConversationThread maps one transport sender to one assistant thread.
Turns are the immutable audit records of what was said on that thread.
"""

import hashlib
from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Return current UTC time."""
    return datetime.now(UTC)


class TurnRole(str, Enum):
    """Who produced a turn."""

    USER = "user"
    ASSISTANT = "assistant"


class ConversationThread(BaseModel):
    """Binding between a sender identifier and an assistant thread."""

    id: UUID = Field(default_factory=uuid4)
    identifier: str = Field(..., description="Transport sender id, unique")
    external_ref: str = Field(..., description="Assistant service thread id")
    medium: str = Field(default="whatsapp", description="Transport medium")
    paused: bool = Field(default=False, description="Suppress automated replies")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Turn(BaseModel):
    """One immutable message on a conversation thread."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    thread_id: UUID
    role: TurnRole
    content: str
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def dedupe_key(self) -> str:
        """Natural key shared by both legs of a dual write."""
        content_hash = hashlib.sha256(self.content.encode("utf-8")).hexdigest()
        raw = "|".join(
            [
                str(self.thread_id),
                self.role.value,
                self.created_at.isoformat(),
                content_hash,
            ]
        )
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class ThreadStats(BaseModel):
    """Aggregate counts for the admin dashboard."""

    total_threads: int = 0
    paused_threads: int = 0
    active_threads: int = 0
    total_turns: int = 0
    user_turns: int = 0
    assistant_turns: int = 0


class TurnMatch(BaseModel):
    """A turn found by a content search, with its thread's identity."""

    turn: Turn
    identifier: str
    medium: str
    paused: bool
