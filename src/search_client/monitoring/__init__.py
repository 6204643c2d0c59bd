"""Metrics instrumentation for the search client."""

from search_client.monitoring.metrics import (
    dispatch_latency_seconds,
    host_attempts_total,
    wait_polls_total,
)

__all__ = [
    "dispatch_latency_seconds",
    "host_attempts_total",
    "wait_polls_total",
]
