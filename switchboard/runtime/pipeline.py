"""TurnPipeline: one logical turn from sender text to assistant reply.

resolve thread -> record user turn -> paused check -> run -> reply ->
record assistant turn. Every failure ends in a reply to the sender except
a superseded run, whose newer prompt will answer instead.
"""

from typing import Any, Protocol

from switchboard.conversation.models import ConversationThread, TurnRole
from switchboard.conversation.registry import ThreadRegistry
from switchboard.db.errors import StoreError
from switchboard.delivery.delivery import DeliveryQueue
from switchboard.errors import (
    ConfigurationError,
    RunSupersededError,
    SwitchboardError,
)
from switchboard.observability.logging import bound_context, get_logger
from switchboard.runtime.runs.scheduler import RunScheduler

logger = get_logger(__name__)

CONFIGURATION_REPLY = (
    "Sorry, the assistant is not configured correctly right now. "
    "Please contact the administrator."
)
RETRY_REPLY = "Sorry, something went wrong while processing your message. Please try again later."
UNREADABLE_MEDIA_REPLY = "I couldn't understand that message."


class TransportAdapter(Protocol):
    """Outbound side of the messaging transport."""

    async def send_reply(self, sender_id: str, text: str) -> None: ...


class MediaExtractor(Protocol):
    """Turns a media payload (audio, image) into text."""

    async def extract(self, payload: Any) -> str: ...


class TurnPipeline:
    """Processes flushed turns for all senders."""

    def __init__(
        self,
        registry: ThreadRegistry,
        scheduler: RunScheduler,
        delivery: DeliveryQueue,
        transport: TransportAdapter,
        media_extractor: MediaExtractor | None = None,
        decorate_prompts: bool = True,
    ) -> None:
        self._registry = registry
        self._scheduler = scheduler
        self._delivery = delivery
        self._transport = transport
        self._media_extractor = media_extractor
        self._decorate_prompts = decorate_prompts
        self._sender_meta: dict[str, dict[str, Any]] = {}

    def remember_sender(self, sender: str, meta: dict[str, Any] | None) -> None:
        """Keep the latest transport metadata (display name, group) for a sender."""
        if meta:
            self._sender_meta[sender] = dict(meta)

    def build_prompt(self, text: str, meta: dict[str, Any] | None) -> str:
        if not self._decorate_prompts or not meta:
            return text
        name = meta.get("name")
        if not name:
            return text
        group = meta.get("group_name") if meta.get("is_group") else None
        prefix = f"({group}) {name}" if group else str(name)
        return f"{prefix}: {text}"

    async def on_turn(self, sender: str, text: str) -> None:
        """Turn handler for the message aggregator."""
        await self.handle_text(sender, text)

    async def on_media(self, sender: str, payload: Any) -> None:
        """Media handler for the message aggregator."""
        await self.handle_media(sender, payload)

    async def handle_text(
        self,
        sender: str,
        text: str,
        meta: dict[str, Any] | None = None,
    ) -> str | None:
        """Process one logical turn.

        Returns:
            The reply sent, or None when nothing was sent
        """
        meta = meta if meta is not None else self._sender_meta.get(sender)

        with bound_context(sender=sender):
            try:
                thread = await self._registry.resolve(sender, meta)
            except (SwitchboardError, StoreError) as e:
                logger.error("thread_resolve_failed", error=str(e), error_type=type(e).__name__)
                await self._send(sender, RETRY_REPLY)
                return RETRY_REPLY
            except Exception as e:
                logger.exception("thread_resolve_failed_unexpectedly", error=str(e))
                await self._send(sender, RETRY_REPLY)
                return RETRY_REPLY

            with bound_context(thread_ref=thread.external_ref):
                self._delivery.submit(thread.id, TurnRole.USER, text)

                if thread.paused:
                    logger.info("thread_paused_reply_skipped")
                    return None

                reply = await self._run(thread, self.build_prompt(text, meta))
                if reply is None:
                    return None

                await self._send(sender, reply)
                self._delivery.submit(thread.id, TurnRole.ASSISTANT, reply)
                return reply

    async def _run(self, thread: ConversationThread, prompt: str) -> str | None:
        try:
            return await self._scheduler.start(thread.external_ref, prompt)
        except RunSupersededError as e:
            logger.info("run_superseded_no_reply", run_id=e.run_id)
            return None
        except ConfigurationError as e:
            logger.error("run_misconfigured", error=e.message)
            return CONFIGURATION_REPLY
        except SwitchboardError as e:
            logger.error(
                "run_failed",
                error=e.message,
                error_type=type(e).__name__,
            )
            return RETRY_REPLY
        except Exception as e:
            logger.exception(
                "run_failed_unexpectedly",
                error=str(e),
                error_type=type(e).__name__,
            )
            return RETRY_REPLY

    async def handle_media(
        self,
        sender: str,
        payload: Any,
        meta: dict[str, Any] | None = None,
    ) -> str | None:
        """Extract text from a media payload and process it like text."""
        text = ""
        if self._media_extractor is None:
            logger.warning("media_extractor_missing", sender=sender)
        else:
            try:
                text = await self._media_extractor.extract(payload)
            except Exception as e:
                logger.error(
                    "media_extraction_failed",
                    sender=sender,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        if not text or not text.strip():
            await self._send(sender, UNREADABLE_MEDIA_REPLY)
            return UNREADABLE_MEDIA_REPLY

        return await self.handle_text(sender, text.strip(), meta)

    async def _send(self, sender: str, text: str) -> None:
        try:
            await self._transport.send_reply(sender, text)
        except Exception as e:
            logger.error(
                "transport_send_failed",
                sender=sender,
                error=str(e),
                error_type=type(e).__name__,
            )
