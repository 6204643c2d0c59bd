"""
Unit tests for RequestDispatcher.

Uses an in-memory requester that scripts per-host outcomes, so each test
asserts exactly which hosts were attempted, in which order, with which
timeouts and headers.
"""

import asyncio
import json
from urllib.parse import parse_qs, urlsplit

import pytest
from prometheus_client import REGISTRY

from search_client.exceptions import (
    BadRequestError,
    HostConnectionError,
    HostTimeoutError,
    NotFoundError,
    UnreachableHostsError,
)
from search_client.models.enums import AttemptOutcome, CallType
from search_client.models.http_models import HttpResponse
from search_client.models.request_options import RequestOptions
from search_client.transport.dispatcher import RequestDispatcher
from search_client.transport.hosts import ClusterHosts


def build_dispatcher(requester, settings, cluster=None) -> RequestDispatcher:
    cluster = cluster or ClusterHosts.from_app_id(settings.APP_ID, seed=settings.HOST_SHUFFLE_SEED)
    return RequestDispatcher(requester, cluster, settings)


def host_addresses(dispatcher, call_type) -> list[str]:
    return [host.address for host in dispatcher.cluster_hosts.hosts_for(call_type)]


def query_of(request) -> dict:
    return {key: values[0] for key, values in parse_qs(urlsplit(request.url).query).items()}


def latency_samples(success: str) -> float:
    """Number of read dispatches observed by the latency histogram."""
    value = REGISTRY.get_sample_value(
        "search_dispatch_latency_seconds_count", {"call_type": "read", "success": success}
    )
    return value or 0.0


# ============================================================================
# Host fallback
# ============================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize("failures", [0, 1, 2, 3])
async def test_fails_over_until_first_healthy_host(test_settings, scripted_requester, failures):
    """Test k failing hosts lead to exactly k+1 attempts in sequence order."""
    cluster = ClusterHosts.from_app_id("testapp", seed=42)
    sequence = [host.address for host in cluster.hosts_for(CallType.READ)]
    requester = scripted_requester(failing_hosts=set(sequence[:failures]), payload={"hits": []})
    dispatcher = build_dispatcher(requester, test_settings, cluster)

    result = await dispatcher.read("GET", "/1/indexes")

    assert result == {"hits": []}
    assert requester.hosts == sequence[: failures + 1]


@pytest.mark.asyncio
async def test_write_traffic_uses_write_hosts(test_settings, scripted_requester):
    """Test write operations start on the primary write host."""
    requester = scripted_requester()
    dispatcher = build_dispatcher(requester, test_settings)

    await dispatcher.write("POST", "/1/keys", {"acl": ["search"]})

    assert requester.hosts == ["testapp.algolia.net"]


@pytest.mark.asyncio
async def test_all_hosts_failing_raises_after_exactly_n_attempts(test_settings, scripted_requester):
    """Test exhaustion after one attempt per host, never more."""
    cluster = ClusterHosts.from_app_id("testapp", seed=42)
    sequence = [host.address for host in cluster.hosts_for(CallType.WRITE)]
    requester = scripted_requester(failing_hosts=set(sequence))
    dispatcher = build_dispatcher(requester, test_settings, cluster)

    with pytest.raises(UnreachableHostsError) as exc_info:
        await dispatcher.write("POST", "/1/keys", {})

    assert requester.hosts == sequence
    assert len(exc_info.value.attempts) == len(sequence)
    assert all(a.outcome is AttemptOutcome.NETWORK_ERROR for a in exc_info.value.attempts)
    assert isinstance(exc_info.value.last_error, HostConnectionError)
    assert exc_info.value.__cause__ is exc_info.value.last_error


@pytest.mark.asyncio
async def test_client_error_is_terminal_after_one_attempt(test_settings, make_requester, ok_response):
    """Test a 4xx on the first host is raised without trying other hosts."""
    requester = make_requester(lambda request: ok_response(400, {"message": "Invalid acl"}))
    dispatcher = build_dispatcher(requester, test_settings)

    with pytest.raises(BadRequestError) as exc_info:
        await dispatcher.write("POST", "/1/keys", {"acl": ["nope"]})

    assert len(requester.calls) == 1
    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Invalid acl"
    assert not isinstance(exc_info.value, NotFoundError)


@pytest.mark.asyncio
async def test_not_found_is_distinguished(test_settings, make_requester, ok_response):
    """Test 404 raises NotFoundError after one attempt."""
    requester = make_requester(lambda request: ok_response(404, {"message": "Key does not exist"}))
    dispatcher = build_dispatcher(requester, test_settings)

    with pytest.raises(NotFoundError) as exc_info:
        await dispatcher.read("GET", "/1/keys/abc")

    assert len(requester.calls) == 1
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_server_error_then_success(test_settings, make_requester, ok_response):
    """Test 5xx and 408 advance to the next host."""
    responses = iter([ok_response(503), ok_response(408), ok_response(200, {"ok": True})])
    requester = make_requester(lambda request: next(responses))
    dispatcher = build_dispatcher(requester, test_settings)

    result = await dispatcher.read("GET", "/1/indexes")

    assert result == {"ok": True}
    assert len(requester.calls) == 3


@pytest.mark.asyncio
async def test_malformed_success_body_is_retried(test_settings, make_requester, ok_response):
    """Test an undecodable 2xx body is treated as retryable."""
    responses = iter([
        HttpResponse(status_code=200, body=b"<html>proxy</html>"),
        ok_response(200, {"ok": True}),
    ])
    requester = make_requester(lambda request: next(responses))
    dispatcher = build_dispatcher(requester, test_settings)

    assert await dispatcher.read("GET", "/1/indexes") == {"ok": True}
    assert len(requester.calls) == 2


@pytest.mark.asyncio
async def test_exhaustion_records_outcomes(test_settings, make_requester, ok_response):
    """Test the aggregate error carries each attempt's outcome."""
    responses = iter([
        HostTimeoutError("Request timeout"),
        ok_response(502),
        HttpResponse(status_code=200, body=b"not json"),
        HostConnectionError("Connection refused"),
    ])
    requester = make_requester(lambda request: next(responses))
    dispatcher = build_dispatcher(requester, test_settings)

    with pytest.raises(UnreachableHostsError) as exc_info:
        await dispatcher.read("GET", "/1/indexes")

    assert [a.outcome for a in exc_info.value.attempts] == [
        AttemptOutcome.TIMEOUT,
        AttemptOutcome.RETRYABLE_STATUS,
        AttemptOutcome.MALFORMED_RESPONSE,
        AttemptOutcome.NETWORK_ERROR,
    ]
    assert exc_info.value.attempts[1].status_code == 502


@pytest.mark.asyncio
async def test_empty_success_body_returns_empty_dict(test_settings, make_requester):
    requester = make_requester(lambda request: HttpResponse(status_code=204))
    dispatcher = build_dispatcher(requester, test_settings)

    assert await dispatcher.write("DELETE", "/1/keys/abc") == {}


# ============================================================================
# Timeouts
# ============================================================================


@pytest.mark.asyncio
async def test_timeouts_escalate_per_attempt(test_settings, make_requester, ok_response):
    """Test each host attempt receives the next escalated timeout."""
    responses = iter([HostTimeoutError("t"), HostTimeoutError("t"), ok_response(200)])
    requester = make_requester(lambda request: next(responses))
    dispatcher = build_dispatcher(requester, test_settings)

    await dispatcher.read("GET", "/1/indexes")

    assert [timeouts.read for _, timeouts in requester.calls] == [2.0, 4.0, 6.0]
    assert [timeouts.connect for _, timeouts in requester.calls] == [1.0, 2.0, 3.0]


@pytest.mark.asyncio
async def test_per_call_timeout_override(test_settings, make_requester, ok_response):
    requester = make_requester(lambda request: ok_response(200))
    dispatcher = build_dispatcher(requester, test_settings)

    await dispatcher.write("POST", "/1/keys", {}, {"writeTimeout": 3})

    assert requester.calls[0][1].read == 3.0


# ============================================================================
# Headers, query and body merging
# ============================================================================


@pytest.mark.asyncio
async def test_header_precedence(test_settings, make_requester, ok_response):
    """Test defaults < extra headers < per-call headers."""
    test_settings.DEFAULT_HEADERS = {"X-Env": "test", "X-Override": "settings"}
    requester = make_requester(lambda request: ok_response(200))
    dispatcher = build_dispatcher(requester, test_settings)
    dispatcher.set_extra_header("X-Override", "extra")
    dispatcher.set_extra_header("X-Forwarded-For", "10.0.0.1")

    await dispatcher.read("GET", "/1/indexes", RequestOptions(headers={"X-Forwarded-For": "10.0.0.2"}))

    headers = requester.calls[0][0].headers
    assert headers["X-Algolia-Application-Id"] == "testapp"
    assert headers["X-Algolia-API-Key"] == "test-api-key-0123456789"
    assert headers["X-Env"] == "test"
    assert headers["X-Override"] == "extra"
    assert headers["X-Forwarded-For"] == "10.0.0.2"


@pytest.mark.asyncio
async def test_per_call_header_replaces_default_regardless_of_case(
    test_settings, make_requester, ok_response
):
    """Test a lower-case per-call API key replaces the configured one."""
    requester = make_requester(lambda request: ok_response(200))
    dispatcher = build_dispatcher(requester, test_settings)

    await dispatcher.read("GET", "/1/indexes", {"x-algolia-api-key": "scoped-key"})

    headers = requester.calls[0][0].headers
    api_keys = [value for name, value in headers.items() if name.lower() == "x-algolia-api-key"]
    assert api_keys == ["scoped-key"]


@pytest.mark.asyncio
async def test_header_layers_merge_case_insensitively(test_settings, make_requester, ok_response):
    """Test settings, extra and per-call layers each replace differently-cased names."""
    test_settings.DEFAULT_HEADERS = {"user-agent": "custom-agent"}
    requester = make_requester(lambda request: ok_response(200))
    dispatcher = build_dispatcher(requester, test_settings)
    dispatcher.set_extra_header("X-Algolia-UserToken", "first")
    dispatcher.set_extra_header("x-algolia-usertoken", "second")

    await dispatcher.read("GET", "/1/indexes", RequestOptions(headers={"CONTENT-TYPE": "text/plain"}))

    lowered = [name.lower() for name in requester.calls[0][0].headers]
    headers = {name.lower(): value for name, value in requester.calls[0][0].headers.items()}
    assert len(lowered) == len(set(lowered))
    assert headers["user-agent"] == "custom-agent"
    assert headers["x-algolia-usertoken"] == "second"
    assert headers["content-type"] == "text/plain"


@pytest.mark.asyncio
async def test_latency_is_observed_for_every_outcome(test_settings, make_requester, ok_response):
    """Test success, client error and cancellation each add one histogram sample."""
    from search_client.transport.requester import HttpRequester

    class HangingRequester(HttpRequester):
        async def send(self, request, timeouts):
            await asyncio.sleep(3600)

    ok_before = latency_samples("true")
    failed_before = latency_samples("false")

    await build_dispatcher(make_requester(lambda r: ok_response(200)), test_settings).read("GET", "/1/a")
    with pytest.raises(BadRequestError):
        await build_dispatcher(make_requester(lambda r: ok_response(403)), test_settings).read("GET", "/1/b")
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(
            build_dispatcher(HangingRequester(), test_settings).read("GET", "/1/c"), timeout=0.05
        )

    assert latency_samples("true") == ok_before + 1
    assert latency_samples("false") == failed_before + 2


@pytest.mark.asyncio
async def test_extra_header_applies_to_later_requests(test_settings, make_requester, ok_response):
    requester = make_requester(lambda request: ok_response(200))
    dispatcher = build_dispatcher(requester, test_settings)

    await dispatcher.read("GET", "/1/indexes")
    dispatcher.set_extra_header("X-Algolia-UserToken", "user-1")
    await dispatcher.read("GET", "/1/indexes")

    assert "X-Algolia-UserToken" not in requester.calls[0][0].headers
    assert requester.calls[1][0].headers["X-Algolia-UserToken"] == "user-1"


@pytest.mark.asyncio
async def test_query_defaults_overridden_not_duplicated(test_settings, make_requester, ok_response):
    """Test caller query values replace operation defaults of the same key."""
    requester = make_requester(lambda request: ok_response(200))
    dispatcher = build_dispatcher(requester, test_settings)

    await dispatcher.read(
        "GET", "/1/logs", {"length": 100}, default_query={"offset": 0, "length": 10}
    )

    request = requester.calls[0][0]
    assert query_of(request) == {"offset": "0", "length": "100"}
    assert urlsplit(request.url).query.count("length=") == 1


@pytest.mark.asyncio
async def test_write_body_merges_options_over_data(test_settings, make_requester, ok_response):
    requester = make_requester(lambda request: ok_response(200))
    dispatcher = build_dispatcher(requester, test_settings)

    await dispatcher.write(
        "POST",
        "/1/indexes/products/operation",
        {"operation": "copy", "destination": "a"},
        {"destination": "b", "forwardToReplicas": True},
    )

    request = requester.calls[0][0]
    assert json.loads(request.body) == {"operation": "copy", "destination": "b"}
    assert query_of(request) == {"forwardToReplicas": "true"}


@pytest.mark.asyncio
async def test_get_requests_have_no_body(test_settings, make_requester, ok_response):
    requester = make_requester(lambda request: ok_response(200))
    dispatcher = build_dispatcher(requester, test_settings)

    await dispatcher.read("GET", "/1/keys")

    assert requester.calls[0][0].body is None


# ============================================================================
# Traffic class override and custom hosts
# ============================================================================


@pytest.mark.asyncio
async def test_explicit_call_type_overrides_verb(test_settings, scripted_requester):
    """Test a POST can be routed to read hosts."""
    requester = scripted_requester()
    dispatcher = build_dispatcher(requester, test_settings)

    await dispatcher.dispatch("POST", "/1/indexes/*/queries", call_type=CallType.READ)

    assert requester.hosts == ["testapp-dsn.algolia.net"]


@pytest.mark.asyncio
async def test_send_with_explicit_hosts(test_settings, scripted_requester):
    """Test custom hosts replace the cluster hosts for one call."""
    requester = scripted_requester(failing_hosts={"first.example"})
    dispatcher = build_dispatcher(requester, test_settings)

    await dispatcher.send("GET", "/1/isalive", hosts=["first.example", "second.example"])
    await dispatcher.send("GET", "/1/isalive")

    assert requester.hosts == ["first.example", "second.example", "testapp-dsn.algolia.net"]


# ============================================================================
# Concurrency and cancellation
# ============================================================================


@pytest.mark.asyncio
async def test_concurrent_dispatches_are_independent(test_settings, make_requester, ok_response):
    """Test retry state is per call: concurrent calls each see their own attempts."""
    def handler(request):
        if request.url.split("/")[2] == "testapp-dsn.algolia.net":
            return HostConnectionError("refused")
        return ok_response(200, {"path": request.url.split("/", 3)[3]})

    requester = make_requester(handler)
    dispatcher = build_dispatcher(requester, test_settings)

    results = await asyncio.gather(
        *(dispatcher.read("GET", f"/1/indexes/{i}/settings") for i in range(5))
    )

    assert [r["path"] for r in results] == [f"1/indexes/{i}/settings" for i in range(5)]
    assert len(requester.calls) == 10


@pytest.mark.asyncio
async def test_cancellation_propagates_without_further_attempts(test_settings):
    """Test a cancelled call aborts the in-flight attempt and stops the loop."""
    from search_client.transport.requester import HttpRequester

    class HangingRequester(HttpRequester):
        def __init__(self):
            self.calls = 0

        async def send(self, request, timeouts):
            self.calls += 1
            await asyncio.sleep(3600)

    requester = HangingRequester()
    dispatcher = build_dispatcher(requester, test_settings)

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(dispatcher.read("GET", "/1/indexes"), timeout=0.05)

    assert requester.calls == 1


@pytest.mark.asyncio
async def test_close_releases_requester(test_settings, make_requester, ok_response):
    requester = make_requester(lambda request: ok_response(200))

    async with build_dispatcher(requester, test_settings):
        pass

    assert requester.closed
