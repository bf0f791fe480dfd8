"""Prometheus metrics for Switchboard."""

from prometheus_client import Counter, Histogram

TURNS_FLUSHED = Counter(
    "switchboard_turns_flushed_total",
    "Logical turns emitted by the message aggregator",
    labelnames=["reason"],
)

RUNS = Counter(
    "switchboard_runs_total",
    "Assistant runs by final outcome",
    labelnames=["outcome"],
)

RUN_LATENCY = Histogram(
    "switchboard_run_latency_seconds",
    "Time from run creation to terminal status",
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0),
)

TOOL_CALLS = Counter(
    "switchboard_tool_calls_total",
    "Tool calls dispatched to the external API",
    labelnames=["function_name", "outcome"],
)

TOOL_ATTEMPTS = Histogram(
    "switchboard_tool_call_attempts",
    "HTTP attempts per tool call",
    buckets=(1, 2, 3, 4, 5, 8),
)

DELIVERY_WRITES = Counter(
    "switchboard_delivery_writes_total",
    "Audit writes by leg and outcome",
    labelnames=["leg", "outcome"],
)
