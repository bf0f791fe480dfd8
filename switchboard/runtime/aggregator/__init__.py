"""Per-sender message debouncing."""

from switchboard.runtime.aggregator.aggregator import MessageAggregator
from switchboard.runtime.aggregator.models import FlushReason, PendingAggregate

__all__ = ["FlushReason", "MessageAggregator", "PendingAggregate"]
