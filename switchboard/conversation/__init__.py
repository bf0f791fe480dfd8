"""Conversation threads, turns and their persistence."""

from switchboard.conversation.models import (
    ConversationThread,
    ThreadStats,
    Turn,
    TurnRole,
)
from switchboard.conversation.registry import ThreadRegistry
from switchboard.conversation.store import ThreadStore

__all__ = [
    "ConversationThread",
    "ThreadRegistry",
    "ThreadStats",
    "ThreadStore",
    "Turn",
    "TurnRole",
]
