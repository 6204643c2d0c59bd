"""Prometheus metrics for the search client.

Registered on the default registry; an application that already exposes a
/metrics endpoint picks them up automatically. Useful alert rules:
- search_host_attempts_total{outcome!="success"} (failing hosts)
- search_wait_polls_total{outcome="too_long"} (tasks never converging)
"""

from prometheus_client import Counter, Histogram

# === Dispatcher Metrics ===

host_attempts_total = Counter(
    "search_host_attempts_total",
    "Total HTTP attempts by traffic class and outcome",
    ["call_type", "outcome"],
)
"""
Attempts counter, one increment per host tried.

Labels:
- call_type: read, write
- outcome: success, timeout, network_error, retryable_status,
  malformed_response, client_error

A high share of non-success outcomes on the first host means the primary
host is degraded and traffic is falling back.
"""

dispatch_latency_seconds = Histogram(
    "search_dispatch_latency_seconds",
    "Latency of a logical operation across all its attempts",
    ["call_type", "success"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)
"""
Dispatch latency histogram, measured from the first attempt to the final
result (success, terminal error or cancellation).

Labels:
- call_type: read, write
- success: true, false
"""

# === Waiter Metrics ===

wait_polls_total = Counter(
    "search_wait_polls_total",
    "Total status polls made by waiters",
    ["outcome"],
)
"""
Poll counter.

Labels:
- outcome: done (resource ready), pending (poll again),
  too_long (budget exhausted, counted once per wait)
"""
