"""
Custom exceptions for the search client.

The dispatcher and the pollers branch on these types, and so do callers:
a NotFoundError while waiting for a key means "not yet", while any other
BadRequestError is fatal. Retryable failures (network, timeout, 5xx) stay
inside the dispatcher and only ever leave it as the cause of an
UnreachableHostsError.
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from search_client.models.http_models import RequestAttempt


class SearchClientError(Exception):
    """
    Base exception for all search client errors.

    All client-specific exceptions inherit from this to allow catching
    any client error with a single except clause.
    """
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(SearchClientError):
    """
    Raised when the client cannot be built from the given configuration.

    Examples:
    - Neither an application id nor explicit hosts were supplied
    - The explicit host list is empty

    Raised at construction time, never deferred to the first request.
    """
    pass


# === Terminal request errors ===


class BadRequestError(SearchClientError):
    """
    Raised when a host answers with a non-retryable 4xx status.

    Retrying on another host cannot change a client error, so the
    dispatcher surfaces it after a single attempt.
    """
    def __init__(self, message: str, status_code: int, details: dict | None = None):
        super().__init__(message, details)
        self.status_code = status_code


class NotFoundError(BadRequestError):
    """
    Raised on a 404 response.

    Distinguished from other client errors so that waiters can keep
    polling for resources that are still propagating.
    """
    pass


class UnreachableHostsError(SearchClientError):
    """
    Raised when every host of the sequence failed with a retryable error.

    Attributes:
        attempts: Every attempt made during the dispatch call, in order
        last_error: The last retryable error observed (also the __cause__)
    """
    def __init__(
        self,
        message: str,
        attempts: list["RequestAttempt"],
        last_error: Optional["RetryableError"] = None,
    ):
        super().__init__(
            message,
            details={
                "attempts": len(attempts),
                "hosts": [attempt.host for attempt in attempts],
            },
        )
        self.attempts = attempts
        self.last_error = last_error


class TaskTooLongError(SearchClientError):
    """
    Raised when a waiter exhausts its poll budget.

    Distinct from UnreachableHostsError: every single request may have
    succeeded, the remote system simply never converged.
    """
    pass


# === Retryable errors (internal to the dispatcher) ===


class RetryableError(SearchClientError):
    """
    Base class for failures that advance the dispatcher to the next host.
    """
    pass


class HostConnectionError(RetryableError):
    """
    Raised by a requester when the host cannot be reached.

    Includes connection refused, DNS failures and protocol errors.
    """
    pass


class HostTimeoutError(HostConnectionError):
    """
    Raised by a requester when the attempt exceeded its timeout.
    """
    pass


class RetryableResponseError(RetryableError):
    """
    Raised when a host answered with a retryable status or a body that
    cannot be decoded.
    """
    def __init__(self, message: str, status_code: int, details: dict | None = None):
        super().__init__(message, details)
        self.status_code = status_code
