"""
Secured API key derivation.

A secured key is a parent key signed together with a set of restrictions
(validity window, index scoping, user token, filters). The service
recomputes the HMAC server-side, so no request is needed to create one.
"""

import base64
import hashlib
import hmac
import re
import time
from collections.abc import Mapping
from typing import Any, Optional

from search_client.helpers import build_query

HMAC_HEX_LENGTH = 64

_VALID_UNTIL = re.compile(r"(?:^|&)validUntil=(\d+)")


def generate_secured_api_key(parent_api_key: str, restrictions: Mapping[str, Any]) -> str:
    """
    Derive a secured API key.

    The restrictions are encoded with build_query in the caller's insertion
    order; the same restrictions in the same order always yield the same key.

    Args:
        parent_api_key: API key used as the HMAC secret
        restrictions: Restriction name -> value (e.g. {"validUntil": 1700000000})

    Returns:
        base64(hex(HMAC-SHA256(parent_api_key, encoded)) + encoded)
    """
    encoded = build_query(restrictions)
    digest = hmac.new(
        parent_api_key.encode("utf-8"), encoded.encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return base64.b64encode(f"{digest}{encoded}".encode("utf-8")).decode("ascii")


def get_secured_api_key_remaining_validity(
    secured_api_key: str, now: Optional[float] = None
) -> int:
    """
    Seconds left before a secured key expires (negative once expired).

    Raises:
        ValueError: If the key carries no validUntil restriction
    """
    decoded = base64.b64decode(secured_api_key).decode("utf-8")
    match = _VALID_UNTIL.search(decoded[HMAC_HEX_LENGTH:])
    if match is None:
        raise ValueError("validUntil not found in secured API key")
    current = time.time() if now is None else now
    return int(match.group(1)) - int(current)
