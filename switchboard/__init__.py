"""Switchboard: orchestration between a messaging transport and an LLM assistant.

Switchboard coalesces bursty inbound messages into logical turns, drives the
assistant's run protocol to completion, dispatches tool calls to an external
HTTP API and keeps a durable audit trail of every turn.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
