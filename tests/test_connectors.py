"""
Tests for provider connectors, the connector registry and token storage.
"""

import json

import httpx
import pytest

from connectors.google import GoogleConnector
from connectors.registry import ConnectorRegistry
from connectors.slack import SlackConnector
from connectors.token_manager import (
    disconnect,
    get_active_token,
    get_user_connections,
    store_connection,
)
from utils.errors import ConnectorError


@pytest.fixture(autouse=True)
def fresh_registry():
    ConnectorRegistry.reset()
    yield
    ConnectorRegistry.reset()


class SlackStub:
    """Answers Slack Web API methods from a method → body table."""

    def __init__(self):
        self.calls = []
        self.bodies = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        method = request.url.path.rsplit("/", 1)[-1]
        self.calls.append((method, request))
        return httpx.Response(200, json=self.bodies.get(method, {"ok": False, "error": "unknown_method"}))


class TestSlackConnector:
    @pytest.mark.asyncio
    async def test_list_channels_maps_fields(self):
        stub = SlackStub()
        stub.bodies["conversations.list"] = {
            "ok": True,
            "channels": [
                {"id": "C1", "name": "general", "topic": {"value": "Company-wide"},
                 "is_private": False, "is_member": True, "num_members": 42},
                {"id": "G1", "name": "leads", "is_private": True},
            ],
        }
        slack = SlackConnector(transport=httpx.MockTransport(stub))

        channels = await slack.list_channels("xoxb-1")

        assert channels == [
            {"id": "C1", "name": "general", "topic": "Company-wide",
             "is_private": False, "is_member": True, "num_members": 42},
            {"id": "G1", "name": "leads", "topic": "",
             "is_private": True, "is_member": False, "num_members": 0},
        ]
        _, request = stub.calls[0]
        assert request.headers["Authorization"] == "Bearer xoxb-1"

    @pytest.mark.asyncio
    async def test_api_error_raises(self):
        stub = SlackStub()
        stub.bodies["conversations.list"] = {"ok": False, "error": "invalid_auth"}
        slack = SlackConnector(transport=httpx.MockTransport(stub))

        with pytest.raises(ConnectorError) as exc_info:
            await slack.list_channels("bad")
        assert "invalid_auth" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_send_message_in_thread(self):
        stub = SlackStub()
        stub.bodies["chat.postMessage"] = {"ok": True, "channel": "C1", "ts": "1700.01"}
        slack = SlackConnector(transport=httpx.MockTransport(stub))

        sent = await slack.send_message("xoxb-1", "C1", "hello", thread_id="1699.00")

        assert sent == {"channel": "C1", "ts": "1700.01"}
        _, request = stub.calls[0]
        assert json.loads(request.content) == {"channel": "C1", "text": "hello", "thread_ts": "1699.00"}

    def test_auth_url_carries_state(self):
        url = SlackConnector().get_auth_url("abc.123")
        assert url.startswith("https://slack.com/oauth/v2/authorize?")
        assert "state=abc.123" in url


class TestGoogleConnector:
    @pytest.mark.asyncio
    async def test_list_spaces(self):
        def handler(request):
            assert request.url.path == "/v1/spaces"
            return httpx.Response(
                200,
                json={
                    "spaces": [
                        {"name": "spaces/AAA", "displayName": "Engineering", "spaceType": "SPACE"},
                        {"name": "spaces/DM1", "spaceType": "DIRECT_MESSAGE"},
                    ]
                },
            )

        google = GoogleConnector(transport=httpx.MockTransport(handler))
        spaces = await google.list_channels("ya29.token")

        assert spaces == [
            {"id": "spaces/AAA", "name": "Engineering", "is_private": False, "space_type": "SPACE"},
            {"id": "spaces/DM1", "name": "spaces/DM1", "is_private": True, "space_type": "DIRECT_MESSAGE"},
        ]

    @pytest.mark.asyncio
    async def test_http_error_propagates(self):
        google = GoogleConnector(
            transport=httpx.MockTransport(lambda r: httpx.Response(403, json={"error": {}})),
        )
        with pytest.raises(httpx.HTTPStatusError):
            await google.list_channels("ya29.token")


class TestRegistry:
    def test_register_and_get(self):
        registry = ConnectorRegistry()
        slack = SlackConnector()
        registry.register(slack)

        assert ConnectorRegistry() is registry
        assert registry.get("slack") is slack
        assert registry.get("miro") is None
        assert registry.list_configured() == ["slack"]

    def test_list_providers_reports_configuration(self):
        providers = {p["provider"]: p for p in ConnectorRegistry().list_providers()}
        assert set(providers) == {"slack", "google"}
        assert providers["slack"]["display_name"] == "Slack"


class TestTokenManager:
    @pytest.mark.asyncio
    async def test_store_then_fetch_token(self, session):
        conn_id = await store_connection(
            session, 1, "slack",
            {"access_token": "xoxb-1", "account_id": "T1", "account_label": "Acme"},
        )

        assert await get_active_token(session, 1, "slack") == "xoxb-1"
        assert await get_active_token(session, 2, "slack") is None

        connections = await get_user_connections(session, 1)
        assert [(c["connection_id"], c["provider"], c["account_label"]) for c in connections] == [
            (conn_id, "slack", "Acme"),
        ]
        assert "access_token" not in connections[0]

    @pytest.mark.asyncio
    async def test_reconnect_updates_same_row(self, session):
        first = await store_connection(session, 1, "slack", {"access_token": "a", "account_id": "T1"})
        second = await store_connection(session, 1, "slack", {"access_token": "b", "account_id": "T1"})

        assert first == second
        assert await get_active_token(session, 1, "slack") == "b"

    @pytest.mark.asyncio
    async def test_expired_without_refresh_token(self, session):
        await store_connection(
            session, 1, "google",
            {"access_token": "ya29", "account_id": "me@example.com", "expires_in": 1},
        )
        assert await get_active_token(session, 1, "google") is None
        assert (await get_user_connections(session, 1))[0]["status"] == "expired"

    @pytest.mark.asyncio
    async def test_disconnect_is_owner_scoped(self, session):
        conn_id = await store_connection(session, 1, "slack", {"access_token": "a", "account_id": "T1"})

        assert await disconnect(session, 2, conn_id) is False
        assert await disconnect(session, 1, conn_id) is True
        assert await get_user_connections(session, 1) == []
