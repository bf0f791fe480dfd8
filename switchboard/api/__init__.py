"""Admin HTTP API for conversation management."""

from switchboard.api.app import create_app

__all__ = ["create_app"]
