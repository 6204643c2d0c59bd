"""
Request-shaping helpers shared by the façade and the key deriver.
"""

import json
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import quote, urlencode


def api_path(path_format: str, *args: Any) -> str:
    """
    Build an API path, URL-encoding every interpolated segment.

    Examples:
        >>> api_path("/1/indexes/%s/operation", "my index")
        '/1/indexes/my%20index/operation'
    """
    if not args:
        return path_format
    return path_format % tuple(quote(str(arg), safe="") for arg in args)


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def build_query(params: Mapping[str, Any]) -> str:
    """
    Serialize parameters into a form-encoded query string.

    Keys keep the caller's insertion order. Lists and dicts are JSON-encoded,
    booleans become true/false and None values are skipped. The output is
    deterministic for a given mapping, which secured-key signing relies on.

    Examples:
        >>> build_query({"filters": "a:b", "restrictIndices": ["i1", "i2"]})
        'filters=a%3Ab&restrictIndices=%5B%22i1%22%2C%22i2%22%5D'
    """
    return urlencode(
        [(key, _query_value(value)) for key, value in params.items() if value is not None]
    )


def ensure_object_id(operations: Iterable[Mapping[str, Any]]) -> None:
    """
    Check that every batch operation targets an explicit objectID.

    Raises:
        ValueError: If an operation body has no objectID
    """
    for position, operation in enumerate(operations):
        body = operation.get("body", operation)
        if not isinstance(body, Mapping) or "objectID" not in body:
            raise ValueError(
                f"Operation #{position} has no objectID; every batch operation must set one"
            )


def redact_secret(secret: str, visible: int = 6) -> str:
    """
    Keep only the first characters of a secret for logs and error messages.

    Examples:
        >>> redact_secret("0123456789abcdef")
        '012345...'
    """
    return f"{secret[:visible]}..."


def merge_headers(*layers: Mapping[str, str]) -> dict[str, str]:
    """
    Merge header maps, later layers winning.

    Header names are case-insensitive: a later "x-algolia-api-key" replaces
    an earlier "X-Algolia-API-Key" and the later spelling is kept.

    Examples:
        >>> merge_headers({"X-Algolia-API-Key": "parent"}, {"x-algolia-api-key": "scoped"})
        {'x-algolia-api-key': 'scoped'}
    """
    merged: dict[str, tuple[str, str]] = {}
    for layer in layers:
        for name, value in layer.items():
            merged[name.lower()] = (name, value)
    return dict(merged.values())
