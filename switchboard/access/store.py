"""SenderStore abstract interface for the authorized sender set."""

from abc import ABC, abstractmethod


class SenderStore(ABC):
    """Persistent set of authorized sender identifiers."""

    @abstractmethod
    async def list_senders(self) -> set[str]:
        """Return every authorized sender."""
        pass

    @abstractmethod
    async def add(self, sender: str) -> bool:
        """Authorize a sender.

        Returns:
            True if added, False if it was already authorized
        """
        pass

    @abstractmethod
    async def remove(self, sender: str) -> bool:
        """Revoke a sender.

        Returns:
            True if removed, False if it was not authorized
        """
        pass
