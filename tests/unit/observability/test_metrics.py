"""Tests for Prometheus metric definitions."""

from prometheus_client import REGISTRY

from switchboard.observability.metrics import DELIVERY_WRITES, TOOL_CALLS, TURNS_FLUSHED


class TestMetrics:
    def test_counters_registered(self) -> None:
        names = {metric.name for metric in REGISTRY.collect()}

        assert "switchboard_turns_flushed" in names
        assert "switchboard_runs" in names
        assert "switchboard_tool_calls" in names
        assert "switchboard_delivery_writes" in names

    def test_labelled_counter_increments(self) -> None:
        before = TURNS_FLUSHED.labels(reason="window")._value.get()
        TURNS_FLUSHED.labels(reason="window").inc()

        assert TURNS_FLUSHED.labels(reason="window")._value.get() == before + 1

    def test_label_sets(self) -> None:
        TOOL_CALLS.labels(function_name="create_order", outcome="success").inc()
        DELIVERY_WRITES.labels(leg="queue", outcome="ok").inc()
