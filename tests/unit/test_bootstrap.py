"""Tests for component wiring."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from switchboard.access.allowlist import ADDED_REPLY
from switchboard.access.stores import InMemorySenderStore, PostgresSenderStore
from switchboard.bootstrap import build_switchboard
from switchboard.config.models.access import AccessConfig
from switchboard.config.models.assistant import AssistantConfig
from switchboard.config.models.storage import StorageConfig
from switchboard.config.models.tools import ToolsConfig
from switchboard.config.settings import Settings
from switchboard.conversation.models import TurnRole
from switchboard.conversation.stores import InMemoryThreadStore, PostgresThreadStore
from switchboard.delivery.queue import InMemoryTurnQueue, RedisTurnQueue
from switchboard.runtime.clock import ManualClock
from switchboard.runtime.runs.client import OpenAIAssistantClient
from switchboard.runtime.tools.cache import InMemoryResponseCache, RedisResponseCache


class RecordingTransport:
    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def send_reply(self, sender_id: str, text: str) -> None:
        self.sent.append((sender_id, text))


@pytest.fixture
def settings() -> Settings:
    return Settings(
        assistant=AssistantConfig(api_key="sk-test", assistant_id="asst_123"),
        tools=ToolsConfig(base_url="https://api.example.com"),
    )


@pytest.fixture
def assistant() -> MagicMock:
    client = MagicMock()
    client.create_thread = AsyncMock(return_value="thread_1")
    client.close = AsyncMock()
    return client


class TestBuild:
    def test_in_memory_backends(self, settings, assistant):
        switchboard = build_switchboard(settings, RecordingTransport(), assistant=assistant)

        assert isinstance(switchboard.thread_store, InMemoryThreadStore)
        assert isinstance(switchboard.turn_queue, InMemoryTurnQueue)
        assert isinstance(switchboard.response_cache, InMemoryResponseCache)
        assert isinstance(switchboard.allowlist._store, InMemorySenderStore)
        assert switchboard.pool is None
        assert switchboard.redis_client is None
        assert switchboard.health_checks == {}

    def test_postgres_and_redis_backends(self, settings, assistant):
        settings = settings.model_copy(
            update={
                "storage": StorageConfig(
                    backend="postgres",
                    queue_backend="redis",
                    cache_backend="redis",
                )
            }
        )

        switchboard = build_switchboard(settings, RecordingTransport(), assistant=assistant)

        assert isinstance(switchboard.thread_store, PostgresThreadStore)
        assert isinstance(switchboard.turn_queue, RedisTurnQueue)
        assert isinstance(switchboard.response_cache, RedisResponseCache)
        assert isinstance(switchboard.allowlist._store, PostgresSenderStore)
        assert set(switchboard.health_checks) == {"postgres", "redis"}
        assert switchboard.pool is not None
        assert switchboard.pool.is_connected is False

    def test_default_assistant_client(self, settings):
        switchboard = build_switchboard(settings, RecordingTransport())
        assert isinstance(switchboard.assistant, OpenAIAssistantClient)

    def test_admin_api(self, settings, assistant):
        switchboard = build_switchboard(settings, RecordingTransport(), assistant=assistant)

        response = TestClient(switchboard.create_api()).get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_text_to_reply(self, settings, assistant):
        transport = RecordingTransport()
        switchboard = build_switchboard(settings, transport, assistant=assistant)
        switchboard.scheduler.start = AsyncMock(return_value="Hello Ana!")

        await switchboard.start()
        assert switchboard.delivery.running is True

        await switchboard.receive_text("alice", "hi", meta={"name": "Ana"})
        await switchboard.receive_text("alice", "there")
        assert switchboard.aggregator.pending("alice") is not None

        await switchboard.close()

        switchboard.scheduler.start.assert_awaited_once_with("thread_1", "Ana: hi there")
        assert transport.sent == [("alice", "Hello Ana!")]
        assert switchboard.delivery.running is False
        assistant.close.assert_awaited_once()

        thread = await switchboard.thread_store.get_by_identifier("alice")
        turns = await switchboard.thread_store.list_turns(thread.id)
        assert [(t.role, t.content) for t in turns] == [
            (TurnRole.USER, "hi there"),
            (TurnRole.ASSISTANT, "Hello Ana!"),
        ]

    @pytest.mark.asyncio
    async def test_pause_during_debounce_records_without_reply(self, settings, assistant):
        clock = ManualClock()
        transport = RecordingTransport()
        switchboard = build_switchboard(settings, transport, assistant=assistant, clock=clock)
        switchboard.scheduler.start = AsyncMock(return_value="should not be sent")

        await switchboard.receive_text("alice", "hi")
        await clock.advance(1)
        await switchboard.registry.set_paused("alice", True)
        await clock.advance(3)
        assert switchboard.aggregator.pending("alice") is None

        await switchboard.close()

        switchboard.scheduler.start.assert_not_awaited()
        assert transport.sent == []
        thread = await switchboard.thread_store.get_by_identifier("alice")
        assert thread.paused is True
        turns = await switchboard.thread_store.list_turns(thread.id)
        assert [(t.role, t.content) for t in turns] == [(TurnRole.USER, "hi")]


class TestSenderAllowlist:
    @pytest.fixture
    def settings(self, settings) -> Settings:
        return settings.model_copy(
            update={"access": AccessConfig(enabled=True, senders=["admin"])}
        )

    @pytest.mark.asyncio
    async def test_unauthorized_sender_ignored_until_added(self, settings, assistant):
        transport = RecordingTransport()
        switchboard = build_switchboard(settings, transport, assistant=assistant)
        switchboard.scheduler.start = AsyncMock(return_value="Hello!")
        await switchboard.start()

        await switchboard.receive_text("stranger", "hi")
        await switchboard.receive_media("stranger", b"voice-note")
        assert switchboard.aggregator.pending("stranger") is None

        await switchboard.receive_text("admin", "!add stranger")
        assert transport.sent == [("admin", ADDED_REPLY.format(sender="stranger"))]

        await switchboard.receive_text("stranger", "hi again")
        await switchboard.close()

        switchboard.scheduler.start.assert_awaited_once_with("thread_1", "hi again")
        assert transport.sent[-1] == ("stranger", "Hello!")
        assert await switchboard.thread_store.get_by_identifier("admin") is None

    @pytest.mark.asyncio
    async def test_commands_are_not_forwarded(self, settings, assistant):
        transport = RecordingTransport()
        switchboard = build_switchboard(settings, transport, assistant=assistant)
        await switchboard.start()

        await switchboard.receive_text("admin", "!remove")
        await switchboard.close()

        assert len(transport.sent) == 1
        assert "!remove 5511999999999" in transport.sent[0][1]
        assert switchboard.aggregator.pending("admin") is None
        assistant.create_thread.assert_not_awaited()
