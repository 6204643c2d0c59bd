"""
Unit tests for search-client.

Test individual components in isolation:
- Host sequences (derived, explicit, shuffled fallbacks, down hosts)
- Retry strategy (timeout escalation, status classification)
- Request dispatcher (failover, fail-fast, merging, cancellation)
- httpx requester (error translation)
- Task poller (staircase backoff, budget)
- Secured API keys
- Façade request shapes
"""
