"""
Data models for the search client.

Includes:
- Enums (CallType, AttemptOutcome)
- HTTP models (HttpRequest, HttpResponse, Timeouts, RequestAttempt)
- RequestOptions (per-call headers, query, body and timeout overrides)
"""

from search_client.models.enums import AttemptOutcome, CallType
from search_client.models.http_models import (
    HttpRequest,
    HttpResponse,
    RequestAttempt,
    Timeouts,
)
from search_client.models.request_options import RequestOptions

__all__ = [
    # Enums
    "AttemptOutcome",
    "CallType",
    # HTTP models
    "HttpRequest",
    "HttpResponse",
    "RequestAttempt",
    "Timeouts",
    # Options
    "RequestOptions",
]
