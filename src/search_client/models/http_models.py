"""
HTTP-level data models for the request/attempt cycle.

These models are the contract between the dispatcher and any requester
implementation (httpx or a test double). They carry no knowledge of the
search API itself.
"""

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from search_client.models.enums import AttemptOutcome


class Timeouts(BaseModel):
    """Per-attempt timeouts handed to the requester."""
    model_config = ConfigDict(frozen=True)

    connect: float = Field(..., gt=0, description="Connect timeout in seconds")
    read: float = Field(..., gt=0, description="Read timeout in seconds")


class HttpRequest(BaseModel):
    """
    One fully resolved HTTP request.

    Built by the dispatcher once per attempt: the URL already points at the
    host being tried and the body is already JSON-encoded.
    """
    model_config = ConfigDict(frozen=True)

    method: str = Field(..., description="HTTP verb (GET, POST, PUT, DELETE)")
    url: str = Field(..., description="Absolute URL including query string")
    headers: dict[str, str] = Field(default_factory=dict)
    body: Optional[bytes] = Field(default=None, description="Encoded JSON body, if any")


class HttpResponse(BaseModel):
    """Raw response returned by a requester."""
    model_config = ConfigDict(frozen=True)

    status_code: int = Field(..., ge=100, le=599)
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = Field(default=b"")


@dataclass(frozen=True)
class RequestAttempt:
    """
    Record of one attempt made during a dispatch call.

    Attributes:
        host: Address of the host that was tried
        timeouts: Timeouts applied to this attempt
        started_at: Monotonic clock reading when the attempt started
        elapsed_ms: Wall time spent on the attempt (ms)
        outcome: How the attempt ended
        status_code: HTTP status, when the host answered
        error: Error text for failed attempts
    """

    host: str
    timeouts: Timeouts
    started_at: float
    elapsed_ms: int
    outcome: AttemptOutcome
    status_code: Optional[int] = None
    error: Optional[str] = None
