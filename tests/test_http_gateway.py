"""Tests for the request gateway against an in-process fake backend.

These tests verify that credentials from the session store are attached
to every request, that a 401 tears the session down before the caller
sees the error, and that other failures pass through unchanged.
"""

from __future__ import annotations

from typing import List, Optional

import pytest

from brokerage_client.clients.auth_providers import AuthProvider
from brokerage_client.clients.http_gateway import RequestGateway
from brokerage_client.errors import ApiError, ResponseFormatError, SessionExpiredError, TransportError
from brokerage_client.models import Identity
from brokerage_client.services.session_store import InMemorySessionStore
from tests.helpers.fake_backend import ALICE, FakeBackend

ALICE_IDENTITY = Identity(username=ALICE[0], password=ALICE[1], user_id=2)


class RecordingNavigator:
    """Stands in for the login redirect; records the session state it saw."""

    def __init__(self, store: InMemorySessionStore) -> None:
        self.store = store
        self.calls: List[Optional[Identity]] = []

    def __call__(self) -> None:
        self.calls.append(self.store.current())


@pytest.mark.asyncio
async def test_credentials_attached_when_logged_in() -> None:
    async with FakeBackend() as backend:
        store = InMemorySessionStore(ALICE_IDENTITY)
        gateway = RequestGateway(store, base_url=backend.api_url)
        orders = await gateway.get("/orders")
        assert orders == []
        _, _, _, headers = backend.requests_to("GET", "/api/orders")[0]
        assert headers["Username"] == "alice"
        assert headers["Password"] == "alice123"


@pytest.mark.asyncio
async def test_no_credentials_without_session() -> None:
    async with FakeBackend() as backend:
        store = InMemorySessionStore()
        gateway = RequestGateway(store, base_url=backend.api_url)
        data = await gateway.post("/auth/login", {"username": ALICE[0], "password": ALICE[1]})
        assert data["customerId"] == 2
        _, _, _, headers = backend.requests_to("POST", "/api/auth/login")[0]
        assert "Username" not in headers
        assert "Password" not in headers


@pytest.mark.asyncio
async def test_unauthorized_tears_down_session_before_caller_sees_error() -> None:
    async with FakeBackend() as backend:
        store = InMemorySessionStore(ALICE_IDENTITY)
        navigator = RecordingNavigator(store)
        gateway = RequestGateway(store, base_url=backend.api_url, on_unauthorized=navigator)
        backend.change_password("alice", "rotated")

        with pytest.raises(SessionExpiredError) as excinfo:
            await gateway.get("/assets")

        # By the time the error is observable the session is gone and the
        # redirect has already happened with no identity left.
        assert store.current() is None
        assert navigator.calls == [None]
        assert "Invalid credentials" in str(excinfo.value)

        # Subsequent calls go out without credentials and fail the same way.
        with pytest.raises(SessionExpiredError):
            await gateway.get("/orders")
        assert "Username" not in backend.requests_to("GET", "/api/orders")[0][3]


@pytest.mark.asyncio
async def test_other_errors_pass_through_with_backend_message() -> None:
    async with FakeBackend() as backend:
        store = InMemorySessionStore(ALICE_IDENTITY)
        navigator = RecordingNavigator(store)
        gateway = RequestGateway(store, base_url=backend.api_url, on_unauthorized=navigator)

        with pytest.raises(ApiError) as excinfo:
            await gateway.get("/orders/pending")

        assert excinfo.value.status == 403
        assert excinfo.value.message == "Only admin users can view all pending orders"
        assert store.current() == ALICE_IDENTITY
        assert navigator.calls == []


@pytest.mark.asyncio
async def test_json_error_message_is_extracted() -> None:
    async with FakeBackend() as backend:
        store = InMemorySessionStore()
        gateway = RequestGateway(store, base_url=backend.api_url)
        with pytest.raises(SessionExpiredError) as excinfo:
            await gateway.post("/auth/login", {"username": "alice", "password": "wrong"})
        assert str(excinfo.value) == "Invalid credentials"


@pytest.mark.asyncio
async def test_connection_failure_raises_transport_error() -> None:
    store = InMemorySessionStore(ALICE_IDENTITY)
    gateway = RequestGateway(store, base_url="http://127.0.0.1:1/api")
    with pytest.raises(TransportError):
        await gateway.get("/orders")
    assert store.current() == ALICE_IDENTITY


@pytest.mark.asyncio
async def test_health_routes_use_root_without_api_prefix() -> None:
    async with FakeBackend() as backend:
        gateway = RequestGateway(InMemorySessionStore(), base_url=backend.api_url)
        assert gateway.health_url == backend.root_url
        data = await gateway.request("GET", "/health", root=gateway.health_url)
        assert data["status"] == "UP"


def test_teardown_spares_a_newer_session() -> None:
    newer = Identity(username="bob", password="bob123", user_id=3)
    store = InMemorySessionStore(newer)
    navigator = RecordingNavigator(store)
    gateway = RequestGateway(store, on_unauthorized=navigator)

    gateway.teardown(ALICE_IDENTITY)
    assert store.current() == newer
    assert navigator.calls == []

    gateway.teardown(newer)
    assert store.current() is None
    assert navigator.calls == [None]


class FixedCredentialsProvider(AuthProvider):
    """Sends the same credentials whoever is logged in."""

    def __init__(self, username: str, password: str) -> None:
        self.username = username
        self.password = password

    async def get_headers(self, method, path, identity):
        return {"Username": self.username, "Password": self.password}


@pytest.mark.asyncio
async def test_custom_provider_401_still_tears_down_live_session() -> None:
    async with FakeBackend() as backend:
        store = InMemorySessionStore(ALICE_IDENTITY)
        navigator = RecordingNavigator(store)
        gateway = RequestGateway(
            store,
            base_url=backend.api_url,
            auth_provider=FixedCredentialsProvider("alice", "stale"),
            on_unauthorized=navigator,
        )

        with pytest.raises(SessionExpiredError):
            await gateway.get("/orders")

        assert store.current() is None
        assert navigator.calls == [None]
        _, _, _, headers = backend.requests_to("GET", "/api/orders")[0]
        assert headers["Password"] == "stale"


@pytest.mark.asyncio
async def test_401_with_undecodable_body_still_tears_down() -> None:
    async with FakeBackend() as backend:
        backend.raw_responses["/api/orders"] = (401, "text/plain; charset=utf-8", b"denied \xff")
        store = InMemorySessionStore(ALICE_IDENTITY)
        navigator = RecordingNavigator(store)
        gateway = RequestGateway(store, base_url=backend.api_url, on_unauthorized=navigator)

        with pytest.raises(SessionExpiredError) as excinfo:
            await gateway.get("/orders")

        assert store.current() is None
        assert navigator.calls == [None]
        assert str(excinfo.value).startswith("denied")


@pytest.mark.asyncio
async def test_undecodable_error_body_raises_api_error() -> None:
    async with FakeBackend() as backend:
        backend.raw_responses["/api/orders"] = (400, "text/plain; charset=utf-8", b"Failed \xfe")
        gateway = RequestGateway(InMemorySessionStore(ALICE_IDENTITY), base_url=backend.api_url)

        with pytest.raises(ApiError) as excinfo:
            await gateway.get("/orders")

        assert excinfo.value.status == 400
        assert excinfo.value.message.startswith("Failed")


@pytest.mark.asyncio
async def test_undecodable_success_body_raises_response_format_error() -> None:
    async with FakeBackend() as backend:
        backend.raw_responses["/api/orders"] = (200, "application/json", b'[{"id": 1, "x": "\xff"}]')
        store = InMemorySessionStore(ALICE_IDENTITY)
        gateway = RequestGateway(store, base_url=backend.api_url)

        with pytest.raises(ResponseFormatError):
            await gateway.get("/orders")
        assert store.current() == ALICE_IDENTITY
