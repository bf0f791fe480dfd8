"""Observability: structured logging and Prometheus metrics.

Logging uses structlog with optional PII redaction; metrics use
prometheus_client counters and histograms.
"""
