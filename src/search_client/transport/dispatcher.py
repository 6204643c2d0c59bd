"""
Resilient multi-host request dispatcher.

One logical operation = one dispatch call. The dispatcher:

1. Resolves the host sequence for the operation's traffic class
2. Walks it strictly in order, one attempt per host, asking the
   RetryStrategy for that attempt's timeouts
3. Returns the decoded body of the first 2xx response
4. Advances to the next host on network errors, timeouts, retryable
   statuses and undecodable bodies
5. Raises immediately on other 4xx (NotFoundError for 404)
6. Raises UnreachableHostsError once every host has failed

Per-call state lives in a RetryState created inside the call, so a single
dispatcher can serve any number of concurrent operations without locks.
Cancelling the calling task aborts the in-flight attempt and propagates
asyncio.CancelledError without trying further hosts.

Usage:
    dispatcher = RequestDispatcher(HttpxRequester(), ClusterHosts.from_app_id("APP"), settings)
    result = await dispatcher.read("GET", "/1/indexes")
"""

import json
import time
from collections.abc import Mapping, Sequence
from typing import Any, Optional, Union

import structlog

from search_client.config import Settings
from search_client.exceptions import (
    BadRequestError,
    HostConnectionError,
    HostTimeoutError,
    NotFoundError,
    RetryableError,
    RetryableResponseError,
    UnreachableHostsError,
)
from search_client.helpers import build_query, merge_headers
from search_client.models.enums import AttemptOutcome, CallType
from search_client.models.http_models import HttpRequest, HttpResponse
from search_client.models.request_options import RequestOptions
from search_client.monitoring.metrics import dispatch_latency_seconds, host_attempts_total
from search_client.transport.hosts import ClusterHosts, Host, HostLike, call_type_for_method
from search_client.transport.requester import HttpRequester
from search_client.transport.retry import RetryState, RetryStrategy


logger = structlog.get_logger(__name__)

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})

OptionsLike = Union[RequestOptions, Mapping[str, Any], None]


class RequestDispatcher:
    """
    Dispatches operations across the cluster hosts with retry.

    Attributes:
        requester: HTTP capability used for every attempt
        cluster_hosts: Shared, read-only host sequences
        retry_strategy: Timeout escalation and retryability rules
    """

    def __init__(
        self,
        requester: HttpRequester,
        cluster_hosts: ClusterHosts,
        settings: Settings,
        retry_strategy: Optional[RetryStrategy] = None,
    ):
        """
        Initialize the dispatcher.

        Args:
            requester: HTTP requester (owned: closed by close())
            cluster_hosts: Host sequences per traffic class
            settings: Client settings (credentials, default headers, timeouts)
            retry_strategy: Retry rules (default: built from settings)
        """
        self.requester = requester
        self.cluster_hosts = cluster_hosts
        self.retry_strategy = retry_strategy or RetryStrategy.from_settings(settings)

        self._default_headers: dict[str, str] = {
            "Content-Type": "application/json; charset=utf-8",
            "User-Agent": settings.USER_AGENT,
        }
        if settings.APP_ID:
            self._default_headers["X-Algolia-Application-Id"] = settings.APP_ID
        if settings.API_KEY:
            self._default_headers["X-Algolia-API-Key"] = settings.API_KEY
        self._default_headers = merge_headers(self._default_headers, settings.DEFAULT_HEADERS)
        self._extra_headers: dict[str, str] = {}

        logger.info(
            "Request dispatcher initialized",
            app_id=settings.APP_ID,
            cluster_hosts=repr(cluster_hosts),
        )

    def set_extra_header(self, name: str, value: str) -> None:
        """Register a static header sent with every subsequent request."""
        self._extra_headers = merge_headers(self._extra_headers, {name: value})

    async def read(
        self,
        method: str,
        path: str,
        request_options: OptionsLike = None,
        default_query: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """
        Dispatch on the read host sequence.

        The request body, if any, comes from the options' body parameters.
        For GET requests plain-mapping options go to the query string.
        """
        options = RequestOptions.create(
            request_options, query_by_default=method.upper() not in BODY_METHODS
        )
        return await self.dispatch(
            method,
            path,
            call_type=CallType.READ,
            request_options=options,
            default_query=default_query,
        )

    async def write(
        self,
        method: str,
        path: str,
        data: Optional[Mapping[str, Any]] = None,
        request_options: OptionsLike = None,
        default_query: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Dispatch on the write host sequence with data as the body."""
        options = RequestOptions.create(
            request_options, query_by_default=method.upper() not in BODY_METHODS
        )
        return await self.dispatch(
            method,
            path,
            call_type=CallType.WRITE,
            body=data,
            request_options=options,
            default_query=default_query,
        )

    async def send(
        self,
        method: str,
        path: str,
        request_options: OptionsLike = None,
        hosts: Union[HostLike, Sequence[HostLike], None] = None,
    ) -> Any:
        """
        Dispatch a custom request.

        The traffic class follows the HTTP verb. An explicit host list
        replaces the cluster hosts for this call only.
        """
        options = RequestOptions.create(
            request_options, query_by_default=method.upper() not in BODY_METHODS
        )
        return await self.dispatch(method, path, request_options=options, hosts=hosts)

    async def dispatch(
        self,
        method: str,
        path: str,
        *,
        call_type: Optional[CallType] = None,
        body: Optional[Mapping[str, Any]] = None,
        request_options: OptionsLike = None,
        default_query: Optional[Mapping[str, Any]] = None,
        hosts: Union[HostLike, Sequence[HostLike], None] = None,
    ) -> Any:
        """
        Run one logical operation across the host sequence.

        Args:
            method: HTTP verb
            path: API path (already URL-encoded)
            call_type: Traffic class (default: derived from the verb)
            body: Operation body; options' body parameters are merged over it
            request_options: Per-call headers, query, body and timeouts
            default_query: Operation query defaults, overridden by options
            hosts: Explicit hosts for this call instead of the cluster hosts

        Returns:
            Decoded JSON body of the first successful response

        Raises:
            NotFoundError: A host answered 404
            BadRequestError: A host answered with a non-retryable 4xx
            UnreachableHostsError: Every host failed with a retryable error
        """
        method = method.upper()
        if call_type is None:
            call_type = call_type_for_method(method)
        options = RequestOptions.create(request_options).add_default_query_parameters(
            default_query or {}
        )

        if hosts:
            host_sequence = ClusterHosts.from_hosts(hosts).hosts_for(call_type)
        else:
            host_sequence = self.cluster_hosts.hosts_for(call_type)

        headers = merge_headers(self._default_headers, self._extra_headers, options.headers)

        content: Optional[bytes] = None
        if method in BODY_METHODS:
            payload = {**(body or {}), **options.body}
            content = json.dumps(payload).encode("utf-8")

        state = RetryState(call_type=call_type, host_count=len(host_sequence))
        succeeded = False
        try:
            result = await self._attempt_hosts(
                method, path, options.query_parameters, headers, content, host_sequence, options, state
            )
            succeeded = True
            return result
        finally:
            # Failed, cancelled and successful dispatches are all observed
            dispatch_latency_seconds.labels(
                call_type=call_type.value, success=str(succeeded).lower()
            ).observe(state.elapsed_seconds)

    async def _attempt_hosts(
        self,
        method: str,
        path: str,
        query: dict[str, Any],
        headers: dict[str, str],
        content: Optional[bytes],
        host_sequence: Sequence[Host],
        options: RequestOptions,
        state: RetryState,
    ) -> Any:
        suffix = f"?{build_query(query)}" if query else ""
        last_error: Optional[RetryableError] = None

        for host in host_sequence:
            attempt_index = state.attempt_index
            timeouts = self.retry_strategy.timeouts_for(attempt_index, state.call_type, options)
            request = HttpRequest(
                method=method,
                url=f"{host.base_url}{path}{suffix}",
                headers=headers,
                body=content,
            )
            started_at = time.monotonic()

            try:
                response = await self.requester.send(request, timeouts)
                result = self._decode(response)

            except HostTimeoutError as e:
                outcome = AttemptOutcome.TIMEOUT
                last_error = e
                state.record(host.address, timeouts, started_at, outcome, error=e.message)

            except HostConnectionError as e:
                outcome = AttemptOutcome.NETWORK_ERROR
                last_error = e
                state.record(host.address, timeouts, started_at, outcome, error=e.message)

            except RetryableResponseError as e:
                if self.retry_strategy.is_success(e.status_code):
                    outcome = AttemptOutcome.MALFORMED_RESPONSE
                else:
                    outcome = AttemptOutcome.RETRYABLE_STATUS
                last_error = e
                state.record(
                    host.address, timeouts, started_at, outcome,
                    status_code=e.status_code, error=e.message,
                )

            except BadRequestError as e:
                state.record(
                    host.address, timeouts, started_at, AttemptOutcome.CLIENT_ERROR,
                    status_code=e.status_code, error=e.message,
                )
                host_attempts_total.labels(
                    call_type=state.call_type.value, outcome=AttemptOutcome.CLIENT_ERROR.value
                ).inc()
                logger.info(
                    "Host returned client error",
                    host=host.address,
                    method=method,
                    path=path,
                    status_code=e.status_code,
                    attempt=attempt_index + 1,
                )
                raise

            else:
                state.record(
                    host.address, timeouts, started_at, AttemptOutcome.SUCCESS,
                    status_code=response.status_code,
                )
                host_attempts_total.labels(
                    call_type=state.call_type.value, outcome=AttemptOutcome.SUCCESS.value
                ).inc()
                logger.debug(
                    "Request succeeded",
                    host=host.address,
                    method=method,
                    path=path,
                    status_code=response.status_code,
                    attempt=attempt_index + 1,
                )
                return result

            host_attempts_total.labels(call_type=state.call_type.value, outcome=outcome.value).inc()
            logger.warning(
                "Host attempt failed, no hosts left"
                if state.exhausted
                else "Host attempt failed, trying next host",
                host=host.address,
                method=method,
                path=path,
                outcome=outcome.value,
                attempt=attempt_index + 1,
                hosts_total=state.host_count,
                connect_timeout=timeouts.connect,
                read_timeout=timeouts.read,
                error=last_error.message,
            )

        logger.error(
            "All hosts failed",
            method=method,
            path=path,
            call_type=state.call_type.value,
            attempts=len(state.attempts),
            last_error=type(last_error).__name__ if last_error else None,
        )
        raise UnreachableHostsError(
            f"Unreachable hosts: {len(state.attempts)} attempt(s) failed for {method} {path}",
            attempts=state.attempts,
            last_error=last_error,
        ) from last_error

    def _decode(self, response: HttpResponse) -> Any:
        """
        Interpret one response.

        Raises:
            RetryableResponseError: Retryable status, or 2xx with an undecodable body
            NotFoundError: 404
            BadRequestError: Any other non-retryable status
        """
        status = response.status_code

        if self.retry_strategy.is_success(status):
            if not response.body.strip():
                return {}
            try:
                return json.loads(response.body)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise RetryableResponseError(
                    "Malformed response body",
                    status_code=status,
                    details={"parse_error": str(e)},
                ) from e

        if self.retry_strategy.is_retryable_status(status):
            raise RetryableResponseError(
                f"Retryable status: {status}",
                status_code=status,
                details={"body": response.body[:200].decode("utf-8", errors="replace")},
            )

        message = _error_message(response)
        if status == 404:
            raise NotFoundError(message, status_code=status)
        raise BadRequestError(message, status_code=status)

    async def close(self):
        """Close the underlying requester."""
        await self.requester.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def _error_message(response: HttpResponse) -> str:
    """Server-provided error message, falling back to the raw body."""
    try:
        payload = json.loads(response.body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        payload = None
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    text = response.body.decode("utf-8", errors="replace").strip()
    return text or f"HTTP {response.status_code}"
