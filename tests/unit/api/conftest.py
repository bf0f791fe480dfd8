"""Admin API fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from switchboard.api.app import create_app
from switchboard.conversation.registry import ThreadRegistry
from switchboard.conversation.stores.inmemory import InMemoryThreadStore


@pytest.fixture
def thread_store() -> InMemoryThreadStore:
    """In-memory thread store."""
    return InMemoryThreadStore()


@pytest.fixture
def assistant() -> MagicMock:
    """Assistant client that hands out sequential thread ids."""
    client = MagicMock()
    refs = iter(f"thread_{i}" for i in range(1, 100))
    client.create_thread = AsyncMock(side_effect=lambda metadata: next(refs))
    client.delete_thread = AsyncMock()
    return client


@pytest.fixture
def registry(thread_store: InMemoryThreadStore, assistant: MagicMock) -> ThreadRegistry:
    return ThreadRegistry(thread_store, assistant)


@pytest.fixture
def app(registry: ThreadRegistry, thread_store: InMemoryThreadStore) -> FastAPI:
    """Create test FastAPI app."""
    return create_app(registry, thread_store)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Test client."""
    return TestClient(app)
