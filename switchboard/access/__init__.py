"""Inbound sender allowlist."""

from switchboard.access.allowlist import SenderAllowlist
from switchboard.access.store import SenderStore

__all__ = ["SenderAllowlist", "SenderStore"]
