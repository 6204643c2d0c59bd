"""Shared test fixtures and configuration for all tests.

This conftest.py provides common fixtures used across unit and integration tests:
settings, an in-memory requester that scripts per-host outcomes, and
response builders.
"""

import json
from collections.abc import Callable
from typing import Any, Union

import pytest

from search_client.config import Settings
from search_client.exceptions import HostConnectionError
from search_client.models.http_models import HttpRequest, HttpResponse, Timeouts
from search_client.transport.requester import HttpRequester


Outcome = Union[HttpResponse, Exception]


class FakeRequester(HttpRequester):
    """
    In-memory requester.

    The handler receives each HttpRequest and returns either an
    HttpResponse or an exception instance to raise. Every call is recorded
    as a (request, timeouts) pair.
    """

    def __init__(self, handler: Callable[[HttpRequest], Outcome]):
        self.handler = handler
        self.calls: list[tuple[HttpRequest, Timeouts]] = []
        self.closed = False

    async def send(self, request: HttpRequest, timeouts: Timeouts) -> HttpResponse:
        self.calls.append((request, timeouts))
        outcome = self.handler(request)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def close(self):
        self.closed = True

    @property
    def hosts(self) -> list[str]:
        """Host authority of every request, in call order."""
        return [request.url.split("/")[2] for request, _ in self.calls]


def json_response(status_code: int = 200, payload: Any = None) -> HttpResponse:
    """Build an HttpResponse carrying a JSON body."""
    return HttpResponse(
        status_code=status_code,
        headers={"content-type": "application/json"},
        body=json.dumps({} if payload is None else payload).encode("utf-8"),
    )


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with a fixed fallback shuffle.

    Override specific settings in individual tests as needed:
        def test_something(test_settings):
            test_settings.READ_TIMEOUT = 1.0
    """
    return Settings(
        # === Credentials ===
        APP_ID="testapp",
        API_KEY="test-api-key-0123456789",
        HOSTS=[],
        HOST_SHUFFLE_SEED=42,

        # === Timeouts ===
        CONNECT_TIMEOUT=1.0,
        READ_TIMEOUT=2.0,
        WRITE_TIMEOUT=10.0,
        TIMEOUT_CAP=30.0,

        # === Waiting ===
        WAIT_TASK_MAX_RETRIES=5,
        WAIT_TASK_BASE_INTERVAL=0.1,

        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def make_requester() -> Callable[[Callable[[HttpRequest], Outcome]], FakeRequester]:
    """Factory fixture for FakeRequester.

    Usage:
        def test_something(make_requester):
            requester = make_requester(lambda request: json_response(200, {}))
    """
    return FakeRequester


@pytest.fixture
def ok_response() -> Callable[..., HttpResponse]:
    """Factory fixture for JSON responses (see json_response)."""
    return json_response


@pytest.fixture
def scripted_requester() -> Callable[..., FakeRequester]:
    """Factory fixture for a requester that fails on listed hosts.

    Usage:
        requester = scripted_requester(failing_hosts={"a.example"}, payload={"ok": True})

    Hosts in failing_hosts raise HostConnectionError; every other host
    answers 200 with payload.
    """
    def _create(failing_hosts: set[str] = frozenset(), payload: Any = None) -> FakeRequester:
        def handler(request: HttpRequest) -> Outcome:
            host = request.url.split("/")[2]
            if host in failing_hosts:
                return HostConnectionError(f"Connection refused: {host}")
            return json_response(200, payload or {"ok": True})

        return FakeRequester(handler)

    return _create
