"""ThreadStore implementations."""

from switchboard.conversation.stores.inmemory import InMemoryThreadStore
from switchboard.conversation.stores.postgres import PostgresThreadStore

__all__ = ["InMemoryThreadStore", "PostgresThreadStore"]
