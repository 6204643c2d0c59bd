"""
HTTP requester abstraction and its httpx implementation.

The dispatcher never talks to httpx directly. It hands one HttpRequest and
one Timeouts value to a requester and gets back an HttpResponse, or one of
the retryable connection errors. This keeps the retry loop testable with
an in-memory requester and allows swapping the HTTP stack.
"""

from abc import ABC, abstractmethod
from typing import Optional

import httpx
import structlog

from search_client.exceptions import HostConnectionError, HostTimeoutError
from search_client.models.http_models import HttpRequest, HttpResponse, Timeouts


logger = structlog.get_logger(__name__)


class HttpRequester(ABC):
    """
    Abstract "perform one HTTP request" capability.

    Responsibilities:
    - Send exactly one request to the URL it is given
    - Apply the given connect/read timeouts
    - Translate transport failures into HostConnectionError / HostTimeoutError

    Does NOT handle:
    - Host selection or retries (that's RequestDispatcher's job)
    - Status code interpretation (any status is returned as a response)
    - JSON encoding or decoding
    """

    @abstractmethod
    async def send(self, request: HttpRequest, timeouts: Timeouts) -> HttpResponse:
        """
        Perform one HTTP request.

        Raises:
            HostTimeoutError: Connect or read timeout exceeded
            HostConnectionError: Connection refused, DNS failure, protocol error
        """
        pass

    async def close(self):
        """Release connection resources. Default implementation does nothing."""
        pass


class HttpxRequester(HttpRequester):
    """
    Requester backed by a persistent httpx.AsyncClient.

    The client is created lazily and reused for connection pooling. A
    pre-built client (e.g. one using httpx.MockTransport) can be injected.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        connection_limits: Optional[httpx.Limits] = None,
    ):
        if connection_limits is None:
            connection_limits = httpx.Limits(
                max_keepalive_connections=5,
                max_connections=10,
                keepalive_expiry=30.0,
            )
        self._client = client
        self._connection_limits = connection_limits

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(limits=self._connection_limits)
            logger.debug("Created new httpx AsyncClient")
        return self._client

    async def send(self, request: HttpRequest, timeouts: Timeouts) -> HttpResponse:
        client = await self._get_client()
        try:
            response = await client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body,
                timeout=httpx.Timeout(timeouts.read, connect=timeouts.connect),
            )
        except httpx.TimeoutException as e:
            raise HostTimeoutError(
                f"Request timeout: {type(e).__name__}",
                details={"url": request.url, "timeouts": timeouts.model_dump()},
            ) from e
        except httpx.TransportError as e:
            raise HostConnectionError(
                f"Network error: {e}",
                details={"url": request.url, "error_type": type(e).__name__},
            ) from e

        return HttpResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )

    async def close(self):
        """Close the HTTP client connection."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            logger.debug("Closed httpx client")
