"""
Client-side access layer for a hosted search service.

Exposes index management, API key management, multi-cluster user mapping
and asynchronous task tracking over HTTP. Every request goes through a
resilient multi-host dispatcher that:
- Picks the read or write host sequence for the operation
- Retries across hosts on network errors, timeouts and 5xx responses
- Surfaces client errors (4xx) immediately

Architecture: httpx transport + multi-host dispatcher + staircase task poller
"""

from search_client.client import SearchClient
from search_client.config import Settings
from search_client.index import SearchIndex
from search_client.logging_config import configure_logging
from search_client.secured_key import generate_secured_api_key

__version__ = "0.1.0"

__all__ = [
    "SearchClient",
    "SearchIndex",
    "configure_logging",
    "Settings",
    "generate_secured_api_key",
]
