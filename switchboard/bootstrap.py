"""Wiring: builds every component from Settings.

Usage:
    settings = get_settings()
    switchboard = build_switchboard(settings, transport=my_transport)
    await switchboard.start()
    try:
        await switchboard.receive_text("5511999990000", "hello")
    finally:
        await switchboard.close()
"""

from dataclasses import dataclass, field
from typing import Any

import redis.asyncio as redis
from fastapi import FastAPI

from switchboard.access.allowlist import SenderAllowlist
from switchboard.access.store import SenderStore
from switchboard.access.stores.inmemory import InMemorySenderStore
from switchboard.access.stores.postgres import PostgresSenderStore
from switchboard.api.app import create_app
from switchboard.api.dependencies import HealthCheck
from switchboard.config.settings import Settings
from switchboard.conversation.registry import ThreadRegistry
from switchboard.conversation.store import ThreadStore
from switchboard.conversation.stores.inmemory import InMemoryThreadStore
from switchboard.conversation.stores.postgres import PostgresThreadStore
from switchboard.db.pool import PostgresPool
from switchboard.delivery.delivery import DeliveryQueue
from switchboard.delivery.queue import InMemoryTurnQueue, RedisTurnQueue, TurnQueue
from switchboard.observability.logging import get_logger, setup_logging
from switchboard.runtime.aggregator.aggregator import MessageAggregator
from switchboard.runtime.clock import Clock, SystemClock
from switchboard.runtime.pipeline import MediaExtractor, TransportAdapter, TurnPipeline
from switchboard.runtime.runs.client import AssistantClient, OpenAIAssistantClient
from switchboard.runtime.runs.scheduler import RunScheduler
from switchboard.runtime.tools.cache import (
    InMemoryResponseCache,
    RedisResponseCache,
    ResponseCache,
)
from switchboard.runtime.tools.dispatcher import ToolDispatcher

logger = get_logger(__name__)


@dataclass
class Switchboard:
    """Container for a fully wired instance."""

    settings: Settings
    thread_store: ThreadStore
    turn_queue: TurnQueue
    response_cache: ResponseCache
    assistant: AssistantClient
    dispatcher: ToolDispatcher
    scheduler: RunScheduler
    registry: ThreadRegistry
    delivery: DeliveryQueue
    pipeline: TurnPipeline
    aggregator: MessageAggregator
    transport: TransportAdapter
    allowlist: SenderAllowlist
    pool: PostgresPool | None = None
    redis_client: redis.Redis | None = None
    health_checks: dict[str, HealthCheck] = field(default_factory=dict)

    async def start(self) -> None:
        """Connect backends and launch the delivery consumer."""
        if self.pool is not None:
            await self.pool.connect()
            await self.pool.ensure_schema()
        await self.allowlist.start()
        await self.delivery.start()
        logger.info("switchboard_started", app_name=self.settings.app_name)

    async def receive_text(
        self,
        sender: str,
        text: str,
        meta: dict[str, Any] | None = None,
    ) -> None:
        """Entry point for inbound text fragments from the transport."""
        if not self._admit(sender):
            return
        reply = await self.allowlist.handle_command(text)
        if reply is not None:
            await self.transport.send_reply(sender, reply)
            return

        self.pipeline.remember_sender(sender, meta)
        await self.aggregator.on_fragment(sender, text)

    async def receive_media(
        self,
        sender: str,
        payload: Any,
        meta: dict[str, Any] | None = None,
    ) -> None:
        """Entry point for inbound media from the transport."""
        if not self._admit(sender):
            return
        self.pipeline.remember_sender(sender, meta)
        await self.aggregator.on_media(sender, payload)

    def _admit(self, sender: str) -> bool:
        if self.allowlist.is_authorized(sender):
            return True
        logger.info("sender_not_authorized", sender=sender)
        return False

    def create_api(self) -> FastAPI:
        return create_app(self.registry, self.thread_store, self.health_checks)

    async def close(self) -> None:
        """Flush pending turns, finish deliveries and release connections."""
        await self.allowlist.stop()
        await self.aggregator.close()
        await self.delivery.drain()
        await self.delivery.stop()
        await self.dispatcher.close()

        close_assistant = getattr(self.assistant, "close", None)
        if close_assistant is not None:
            await close_assistant()
        if self.redis_client is not None:
            await self.redis_client.aclose()
        if self.pool is not None:
            await self.pool.close()

        logger.info("switchboard_closed")


def build_switchboard(
    settings: Settings,
    transport: TransportAdapter,
    media_extractor: MediaExtractor | None = None,
    assistant: AssistantClient | None = None,
    clock: Clock | None = None,
) -> Switchboard:
    """Build every component from settings.

    Args:
        settings: Loaded configuration
        transport: Outbound side of the messaging transport
        media_extractor: Converts media payloads into text
        assistant: Assistant client override (defaults to OpenAI)
        clock: Time source override
    """
    setup_logging(
        level=settings.observability.log_level,
        format=settings.observability.log_format,
        redact_pii=settings.observability.redact_pii,
    )
    clock = clock or SystemClock()
    storage = settings.storage
    health_checks: dict[str, HealthCheck] = {}

    pool: PostgresPool | None = None
    sender_store: SenderStore
    thread_store: ThreadStore
    if storage.backend == "postgres":
        pool = PostgresPool.from_config(storage.postgres)
        thread_store = PostgresThreadStore(pool)
        sender_store = PostgresSenderStore(pool)
        health_checks["postgres"] = pool.health_check
    else:
        thread_store = InMemoryThreadStore()
        sender_store = InMemorySenderStore()

    redis_client: redis.Redis | None = None
    if "redis" in (storage.queue_backend, storage.cache_backend):
        redis_client = redis.from_url(storage.redis.url)

        async def redis_ping() -> bool:
            return bool(await redis_client.ping())

        health_checks["redis"] = redis_ping

    turn_queue: TurnQueue
    if storage.queue_backend == "redis":
        turn_queue = RedisTurnQueue(redis_client, key=storage.redis.queue_key)
    else:
        turn_queue = InMemoryTurnQueue()

    response_cache: ResponseCache
    if storage.cache_backend == "redis":
        response_cache = RedisResponseCache(redis_client, key_prefix=storage.redis.cache_prefix)
    else:
        response_cache = InMemoryResponseCache(clock)

    if assistant is None:
        api_key = settings.assistant.api_key
        assistant = OpenAIAssistantClient(
            api_key=api_key.get_secret_value() if api_key else None,
            timeout=settings.assistant.request_timeout_seconds,
        )

    dispatcher = ToolDispatcher(settings.tools, cache=response_cache, clock=clock)
    scheduler = RunScheduler(assistant, dispatcher, settings.assistant, clock=clock)
    registry = ThreadRegistry(thread_store, assistant, medium=settings.assistant.medium)
    delivery = DeliveryQueue(thread_store, turn_queue, settings.delivery, clock=clock)
    pipeline = TurnPipeline(
        registry,
        scheduler,
        delivery,
        transport,
        media_extractor=media_extractor,
    )
    aggregator = MessageAggregator(
        settings.aggregator,
        on_turn=pipeline.on_turn,
        on_media=pipeline.on_media,
        clock=clock,
    )
    allowlist = SenderAllowlist(sender_store, settings.access, clock=clock)

    logger.info(
        "switchboard_built",
        store_backend=storage.backend,
        queue_backend=storage.queue_backend,
        cache_backend=storage.cache_backend,
        allowlist_enabled=settings.access.enabled,
    )
    return Switchboard(
        settings=settings,
        thread_store=thread_store,
        turn_queue=turn_queue,
        response_cache=response_cache,
        assistant=assistant,
        dispatcher=dispatcher,
        scheduler=scheduler,
        registry=registry,
        delivery=delivery,
        pipeline=pipeline,
        aggregator=aggregator,
        transport=transport,
        allowlist=allowlist,
        pool=pool,
        redis_client=redis_client,
        health_checks=health_checks,
    )
