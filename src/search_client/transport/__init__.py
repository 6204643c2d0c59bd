"""
Multi-host transport layer.

Components:
- ClusterHosts / Host: ordered host sequences per traffic class
- RetryStrategy / RetryState: timeout escalation and retryability rules
- HttpRequester / HttpxRequester: one-request HTTP capability
- RequestDispatcher: walks the host sequence for one logical operation
"""

from search_client.transport.dispatcher import RequestDispatcher
from search_client.transport.hosts import ClusterHosts, Host, call_type_for_method
from search_client.transport.requester import HttpRequester, HttpxRequester
from search_client.transport.retry import RetryState, RetryStrategy

__all__ = [
    "ClusterHosts",
    "Host",
    "call_type_for_method",
    "HttpRequester",
    "HttpxRequester",
    "RequestDispatcher",
    "RetryState",
    "RetryStrategy",
]
