"""SenderAllowlist: decides which inbound senders reach the assistant.

The authorized set is cached in memory and re-read from the SenderStore on
a fixed interval. Until the first successful read only the configured
senders are admitted. Authorized senders can grant or revoke access for
others with the add/remove commands.
"""

import asyncio

from switchboard.access.store import SenderStore
from switchboard.config.models.access import AccessConfig
from switchboard.db.errors import StoreError
from switchboard.observability.logging import get_logger
from switchboard.runtime.clock import Clock, SystemClock

logger = get_logger(__name__)

ADDED_REPLY = "{sender} can now talk to the assistant."
ALREADY_ADDED_REPLY = "{sender} was already authorized."
REMOVED_REPLY = "{sender} can no longer talk to the assistant."
NOT_FOUND_REPLY = "{sender} was not authorized."
PINNED_REPLY = "{sender} is authorized by configuration and cannot be removed here."
USAGE_REPLY = "Please include a phone number. Example: {command} 5511999999999"
STORE_ERROR_REPLY = "Could not update authorized numbers. Please try again later."


class SenderAllowlist:
    """Cached, periodically reloaded set of authorized senders."""

    def __init__(
        self,
        store: SenderStore,
        config: AccessConfig | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._config = config or AccessConfig()
        self._clock = clock or SystemClock()
        self._pinned = frozenset(self._config.senders)
        self._senders: set[str] | None = None
        self._reload_task: asyncio.Task[None] | None = None

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def loaded(self) -> bool:
        return self._senders is not None

    def is_authorized(self, sender: str) -> bool:
        if not self._config.enabled or sender in self._pinned:
            return True
        return self._senders is not None and sender in self._senders

    async def load(self) -> bool:
        """Replace the cached set with the store's contents.

        A failed read keeps the previous set.

        Returns:
            True if the set was read
        """
        try:
            senders = await self._store.list_senders()
        except StoreError as e:
            logger.warning("authorized_senders_load_failed", error=str(e))
            return False

        self._senders = senders
        logger.debug("authorized_senders_loaded", count=len(senders))
        return True

    async def add(self, sender: str) -> bool:
        added = await self._store.add(sender)
        if self._senders is not None:
            self._senders.add(sender)
        logger.info("sender_authorized", sender=sender, added=added)
        return added

    async def remove(self, sender: str) -> bool:
        removed = await self._store.remove(sender)
        if self._senders is not None:
            self._senders.discard(sender)
        logger.info("sender_revoked", sender=sender, removed=removed)
        return removed

    async def handle_command(self, text: str) -> str | None:
        """Run an add/remove command.

        Returns:
            The reply for the issuing sender, or None if `text` is not a command
        """
        if not self._config.enabled:
            return None

        body = text.strip()
        for command, action in (
            (self._config.add_command, self._run_add),
            (self._config.remove_command, self._run_remove),
        ):
            if body == command or body.startswith(f"{command} "):
                target = body[len(command) :].strip()
                if not target:
                    return USAGE_REPLY.format(command=command)
                try:
                    return await action(target)
                except StoreError as e:
                    logger.error("authorized_senders_update_failed", command=command, error=str(e))
                    return STORE_ERROR_REPLY
        return None

    async def _run_add(self, sender: str) -> str:
        if await self.add(sender):
            return ADDED_REPLY.format(sender=sender)
        return ALREADY_ADDED_REPLY.format(sender=sender)

    async def _run_remove(self, sender: str) -> str:
        if await self.remove(sender):
            return REMOVED_REPLY.format(sender=sender)
        if sender in self._pinned:
            return PINNED_REPLY.format(sender=sender)
        return NOT_FOUND_REPLY.format(sender=sender)

    # =========================================================================
    # Periodic reload
    # =========================================================================

    async def start(self) -> None:
        """Load the set and keep reloading it in the background."""
        if not self._config.enabled or self._reload_task is not None:
            return

        await self.load()
        self._reload_task = asyncio.create_task(self._reload_loop())
        logger.info(
            "sender_allowlist_started",
            reload_interval_seconds=self._config.reload_interval_seconds,
            loaded=self.loaded,
        )

    async def stop(self) -> None:
        if self._reload_task is None:
            return

        self._reload_task.cancel()
        try:
            await self._reload_task
        except asyncio.CancelledError:
            pass
        self._reload_task = None
        logger.info("sender_allowlist_stopped")

    async def _reload_loop(self) -> None:
        while True:
            await self._clock.sleep(self._config.reload_interval_seconds)
            await self.load()
