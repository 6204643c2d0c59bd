"""
Enumerations for the dispatcher data models.
"""

from enum import Enum


class CallType(str, Enum):
    """
    Traffic class of an operation.

    Decides which host sequence the dispatcher walks: read traffic goes to
    the load-balanced search host first, write traffic to the primary
    indexing host first.
    """

    READ = "read"
    WRITE = "write"


class AttemptOutcome(str, Enum):
    """
    Outcome of a single HTTP attempt against one host.

    Only SUCCESS and CLIENT_ERROR stop the dispatch loop; every other
    outcome advances to the next host.
    """

    SUCCESS = "success"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network_error"
    RETRYABLE_STATUS = "retryable_status"
    MALFORMED_RESPONSE = "malformed_response"
    CLIENT_ERROR = "client_error"
