"""
Per-call request options.

Callers may pass either a plain mapping or a RequestOptions instance for
the same parameter. Both are normalized into a RequestOptions with named
fields for headers, query parameters, body parameters and timeouts.

Merge precedence, applied by the dispatcher:
    per-call options > operation defaults > client-level defaults
"""

from collections.abc import Mapping
from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from search_client.helpers import merge_headers
from search_client.models.enums import CallType


# Plain-mapping keys routed to the query string instead of the body
QUERY_PARAMETER_KEYS = frozenset(
    {
        "forwardToReplicas",
        "replaceExistingSynonyms",
        "clearExistingRules",
        "createIfNotExists",
        "getVersion",
    }
)

# Plain-mapping keys routed to the headers besides any "X-" prefixed key
HEADER_KEYS = frozenset({"content-type", "user-agent"})

TIMEOUT_KEYS = {
    "connectTimeout": "connect_timeout",
    "readTimeout": "read_timeout",
    "writeTimeout": "write_timeout",
}


class RequestOptions(BaseModel):
    """
    Per-call overrides for a single logical operation.

    Attributes:
        headers: Extra headers, override client-level headers of the same name
        query_parameters: Query string values, override operation defaults
        body: Body parameters, merged over the operation's own body
        connect_timeout: Base connect timeout for this call (seconds)
        read_timeout: Base timeout for read traffic (seconds)
        write_timeout: Base timeout for write traffic (seconds)
    """

    headers: dict[str, str] = Field(default_factory=dict)
    query_parameters: dict[str, Any] = Field(default_factory=dict)
    body: dict[str, Any] = Field(default_factory=dict)
    connect_timeout: Optional[float] = Field(default=None, gt=0)
    read_timeout: Optional[float] = Field(default=None, gt=0)
    write_timeout: Optional[float] = Field(default=None, gt=0)

    @classmethod
    def create(
        cls,
        options: Union["RequestOptions", Mapping[str, Any], None] = None,
        query_by_default: bool = False,
    ) -> "RequestOptions":
        """
        Normalize caller input into a fresh RequestOptions.

        An existing RequestOptions is deep-copied so operations can add
        their own parameters without touching the caller's object.

        Args:
            options: RequestOptions, plain mapping, or None
            query_by_default: Route unrecognized mapping keys to the query
                string instead of the body (requests without a body, e.g. GET)

        Returns:
            New RequestOptions instance
        """
        if options is None:
            return cls()
        if isinstance(options, RequestOptions):
            return options.model_copy(deep=True)
        if not isinstance(options, Mapping):
            raise TypeError(
                f"request options must be a mapping or RequestOptions, got {type(options).__name__}"
            )

        request_options = cls()
        for key, value in options.items():
            if key in TIMEOUT_KEYS:
                setattr(request_options, TIMEOUT_KEYS[key], value)
            elif key.lower().startswith("x-") or key.lower() in HEADER_KEYS:
                request_options.add_header(key, str(value))
            elif key in QUERY_PARAMETER_KEYS or query_by_default:
                request_options.query_parameters[key] = value
            else:
                request_options.body[key] = value
        return request_options

    def add_header(self, name: str, value: str) -> "RequestOptions":
        """Set a header, replacing any header of the same name in another case."""
        self.headers = merge_headers(self.headers, {name: value})
        return self

    def add_body_parameter(self, name: str, value: Any) -> "RequestOptions":
        self.body[name] = value
        return self

    def add_default_query_parameters(self, defaults: Mapping[str, Any]) -> "RequestOptions":
        """Add operation defaults without overriding caller-supplied values."""
        for name, value in defaults.items():
            self.query_parameters.setdefault(name, value)
        return self

    def timeout_for(self, call_type: CallType) -> Optional[float]:
        """Per-call base timeout override for the given traffic class."""
        if call_type is CallType.READ:
            return self.read_timeout
        return self.write_timeout
