"""In-memory implementation of SenderStore."""

from switchboard.access.store import SenderStore


class InMemorySenderStore(SenderStore):
    """Set-backed store for testing and development."""

    def __init__(self, senders: set[str] | None = None) -> None:
        self._senders = set(senders or ())

    async def list_senders(self) -> set[str]:
        return set(self._senders)

    async def add(self, sender: str) -> bool:
        if sender in self._senders:
            return False
        self._senders.add(sender)
        return True

    async def remove(self, sender: str) -> bool:
        if sender not in self._senders:
            return False
        self._senders.discard(sender)
        return True
