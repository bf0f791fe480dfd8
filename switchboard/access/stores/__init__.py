"""SenderStore implementations."""

from switchboard.access.stores.inmemory import InMemorySenderStore
from switchboard.access.stores.postgres import PostgresSenderStore

__all__ = ["InMemorySenderStore", "PostgresSenderStore"]
