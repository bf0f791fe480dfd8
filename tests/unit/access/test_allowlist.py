"""Tests for SenderAllowlist."""

import pytest

from switchboard.access.allowlist import (
    ADDED_REPLY,
    ALREADY_ADDED_REPLY,
    NOT_FOUND_REPLY,
    PINNED_REPLY,
    REMOVED_REPLY,
    STORE_ERROR_REPLY,
    SenderAllowlist,
)
from switchboard.access.stores.inmemory import InMemorySenderStore
from switchboard.config.models.access import AccessConfig
from switchboard.db.errors import ConnectionError


class FlakySenderStore(InMemorySenderStore):
    """Raises ConnectionError while `down` is set."""

    def __init__(self, senders: set[str] | None = None) -> None:
        super().__init__(senders)
        self.down = False
        self.reads = 0

    async def list_senders(self) -> set[str]:
        self.reads += 1
        if self.down:
            raise ConnectionError("database unavailable")
        return await super().list_senders()

    async def add(self, sender: str) -> bool:
        if self.down:
            raise ConnectionError("database unavailable")
        return await super().add(sender)


@pytest.fixture
def store() -> FlakySenderStore:
    return FlakySenderStore({"5511000"})


@pytest.fixture
def config() -> AccessConfig:
    return AccessConfig(enabled=True, senders=["admin"], reload_interval_seconds=60)


@pytest.fixture
def allowlist(store, config, clock) -> SenderAllowlist:
    return SenderAllowlist(store, config, clock=clock)


class TestAuthorization:
    def test_disabled_admits_everyone(self, store, clock):
        allowlist = SenderAllowlist(store, AccessConfig(), clock=clock)

        assert allowlist.is_authorized("anyone") is True

    def test_nobody_but_configured_before_load(self, allowlist):
        assert allowlist.loaded is False
        assert allowlist.is_authorized("5511000") is False
        assert allowlist.is_authorized("admin") is True

    @pytest.mark.asyncio
    async def test_stored_senders_after_load(self, allowlist):
        assert await allowlist.load() is True

        assert allowlist.is_authorized("5511000") is True
        assert allowlist.is_authorized("5511999") is False

    @pytest.mark.asyncio
    async def test_failed_load_keeps_previous_set(self, allowlist, store):
        await allowlist.load()
        store.down = True

        assert await allowlist.load() is False
        assert allowlist.is_authorized("5511000") is True


class TestCommands:
    @pytest.mark.asyncio
    async def test_add_then_remove(self, allowlist, store):
        await allowlist.load()

        reply = await allowlist.handle_command("!add 5511777")
        assert reply == ADDED_REPLY.format(sender="5511777")
        assert allowlist.is_authorized("5511777") is True
        assert "5511777" in await store.list_senders()

        reply = await allowlist.handle_command("  !remove 5511777 ")
        assert reply == REMOVED_REPLY.format(sender="5511777")
        assert allowlist.is_authorized("5511777") is False

    @pytest.mark.asyncio
    async def test_repeated_add_and_unknown_remove(self, allowlist):
        await allowlist.load()

        assert await allowlist.handle_command("!add 5511000") == ALREADY_ADDED_REPLY.format(
            sender="5511000"
        )
        assert await allowlist.handle_command("!remove 5511888") == NOT_FOUND_REPLY.format(
            sender="5511888"
        )
        assert await allowlist.handle_command("!remove admin") == PINNED_REPLY.format(
            sender="admin"
        )

    @pytest.mark.asyncio
    async def test_missing_number_gets_usage(self, allowlist):
        reply = await allowlist.handle_command("!add")

        assert reply is not None
        assert "!add 5511999999999" in reply

    @pytest.mark.asyncio
    async def test_ordinary_text_is_not_a_command(self, allowlist):
        assert await allowlist.handle_command("hello there") is None
        assert await allowlist.handle_command("!addendum") is None

    @pytest.mark.asyncio
    async def test_commands_ignored_when_disabled(self, store, clock):
        allowlist = SenderAllowlist(store, AccessConfig(), clock=clock)

        assert await allowlist.handle_command("!add 5511777") is None
        assert "5511777" not in await store.list_senders()

    @pytest.mark.asyncio
    async def test_store_failure_reply(self, allowlist, store):
        store.down = True

        assert await allowlist.handle_command("!add 5511777") == STORE_ERROR_REPLY

    @pytest.mark.asyncio
    async def test_custom_command_names(self, store, clock):
        config = AccessConfig(enabled=True, add_command="!adicionar", remove_command="!remover")
        allowlist = SenderAllowlist(store, config, clock=clock)
        await allowlist.load()

        assert await allowlist.handle_command("!adicionar 5511777") == ADDED_REPLY.format(
            sender="5511777"
        )
        assert await allowlist.handle_command("!add 5511666") is None


class TestReload:
    @pytest.mark.asyncio
    async def test_reloads_on_interval(self, allowlist, store, clock):
        await allowlist.start()
        assert store.reads == 1

        await store.add("5511555")
        await clock.advance(59)
        assert allowlist.is_authorized("5511555") is False

        await clock.advance(1)
        assert store.reads == 2
        assert allowlist.is_authorized("5511555") is True

        await allowlist.stop()

    @pytest.mark.asyncio
    async def test_recovers_after_failed_first_load(self, allowlist, store, clock):
        store.down = True
        await allowlist.start()
        assert allowlist.loaded is False

        store.down = False
        await clock.advance(60)

        assert allowlist.loaded is True
        assert allowlist.is_authorized("5511000") is True
        await allowlist.stop()

    @pytest.mark.asyncio
    async def test_start_is_a_no_op_when_disabled(self, store, clock):
        allowlist = SenderAllowlist(store, AccessConfig(), clock=clock)

        await allowlist.start()

        assert store.reads == 0
        assert clock.pending_sleepers == 0
        await allowlist.stop()
