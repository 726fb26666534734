"""Unit tests for the Zendesk REST client and its triage adapter."""

import base64
import json

import httpx
import pytest

from deskpilot.config import TicketCategory, TicketPriority
from deskpilot.core import ConfigurationException, ResourceNotFoundException, TicketingException
from deskpilot.infrastructure.ticketing import (
    DraftNoteMetadata,
    ZendeskClient,
    format_draft_note,
    merge_tags
)
from deskpilot.triage.infrastructure import ZendeskTicketingClient

TICKET = {
    "id": 42,
    "subject": "Cannot login",
    "description": "Error on login",
    "status": "open",
    "priority": "normal",
    "tags": ["vip", "web"],
    "requester_id": 7,
}


class ZendeskStub:
    """Records requests and answers them like the Zendesk API."""

    def __init__(self):
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, request.url.path, body))

        if request.url.path == "/api/v2/tickets/42.json":
            if request.method == "PUT":
                return httpx.Response(200, json={"ticket": {**TICKET, **body["ticket"]}})
            return httpx.Response(200, json={"ticket": TICKET})
        if request.url.path == "/api/v2/tickets/42/comments.json":
            return httpx.Response(200, json={"comments": [
                {"plain_body": "I cannot log in", "body": "<p>I cannot log in</p>"},
                {"body": "Try resetting your password"},
            ]})
        if request.url.path == "/api/v2/users/7.json":
            return httpx.Response(200, json={"user": {"id": 7, "name": "Jane Doe", "email": "jane@example.com"}})
        if request.url.path == "/api/v2/users/me.json":
            return httpx.Response(200, json={"user": {"id": 1, "email": "agent@example.com"}})
        if request.url.path == "/api/v2/tickets/500.json":
            return httpx.Response(500, text="Internal error")
        return httpx.Response(404, json={"error": "RecordNotFound"})


@pytest.fixture
def zendesk_stub() -> ZendeskStub:
    return ZendeskStub()


@pytest.fixture
def zendesk_client(zendesk_stub) -> ZendeskClient:
    return ZendeskClient(
        subdomain="acme",
        email="agent@example.com",
        api_token="secret-token",
        timeout_seconds=5,
        transport=httpx.MockTransport(zendesk_stub)
    )


class TestHelpers:

    @pytest.mark.unit
    def test_merge_tags_keeps_order_and_dedupes(self):
        assert merge_tags(["vip", "web"], ["ai_processed", "vip"]) == ["vip", "web", "ai_processed"]

    @pytest.mark.unit
    def test_format_draft_note(self):
        note = format_draft_note(
            "Hi Jane,\n\nPlease reset your password.",
            DraftNoteMetadata(category="account_management", confidence=0.856, sources=["a", "", "b", "c", "d"])
        )

        assert note.split("\n") == [
            "📝 AI Draft Response",
            "Category: account_management | Confidence: 86%",
            "Sources: a, b, c",
            "",
            "Hi Jane,",
            "",
            "Please reset your password.",
        ]

    @pytest.mark.unit
    def test_format_draft_note_without_metadata(self):
        assert format_draft_note("Hello") == "📝 AI Draft Response\n\nHello"


class TestZendeskClient:

    @pytest.mark.unit
    def test_missing_credentials(self, monkeypatch):
        from deskpilot.infrastructure import ticketing as module

        monkeypatch.setattr(module.settings, "zendesk_subdomain", "")
        with pytest.raises(ConfigurationException):
            ZendeskClient(email="agent@example.com", api_token="token")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_get_ticket_uses_token_auth(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["url"] = str(request.url)
            return httpx.Response(200, json={"ticket": TICKET})

        client = ZendeskClient("acme", "agent@example.com", "secret-token", transport=httpx.MockTransport(handler))
        ticket = await client.get_ticket(42)

        assert ticket.id == 42
        assert ticket.tags == ["vip", "web"]
        assert ticket.requester_id == 7
        assert seen["url"] == "https://acme.zendesk.com/api/v2/tickets/42.json"
        expected = base64.b64encode(b"agent@example.com/token:secret-token").decode()
        assert seen["auth"] == f"Basic {expected}"
        await client.close()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_get_user_and_comments(self, zendesk_client):
        user = await zendesk_client.get_user(7)
        comments = await zendesk_client.get_ticket_comments(42)

        assert (user.name, user.email) == ("Jane Doe", "jane@example.com")
        assert comments == ["I cannot log in", "Try resetting your password"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_add_tags_merges_existing(self, zendesk_client, zendesk_stub):
        merged = await zendesk_client.add_tags(42, ["ai_processed", "vip"])

        assert merged == ["vip", "web", "ai_processed"]
        method, path, body = zendesk_stub.requests[-1]
        assert (method, path) == ("PUT", "/api/v2/tickets/42.json")
        assert body == {"ticket": {"tags": ["vip", "web", "ai_processed"]}}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_internal_note_is_private(self, zendesk_client, zendesk_stub):
        await zendesk_client.add_internal_note(42, "Checked logs")

        assert zendesk_stub.requests[-1][2] == {"ticket": {"comment": {"body": "Checked logs", "public": False}}}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_set_priority_and_custom_field(self, zendesk_client, zendesk_stub):
        await zendesk_client.set_priority(42, TicketPriority.URGENT)
        await zendesk_client.set_custom_field(42, 360001, "billing")

        assert zendesk_stub.requests[-2][2] == {"ticket": {"priority": "urgent"}}
        assert zendesk_stub.requests[-1][2] == {"ticket": {"custom_fields": [{"id": 360001, "value": "billing"}]}}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_not_found(self, zendesk_client):
        with pytest.raises(ResourceNotFoundException):
            await zendesk_client.get_ticket(99)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_server_error(self, zendesk_client):
        with pytest.raises(TicketingException) as exc_info:
            await zendesk_client.get_ticket(500)

        assert exc_info.value.upstream_status == 500
        assert exc_info.value.status_code == 502

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = ZendeskClient("acme", "agent@example.com", "token", transport=httpx.MockTransport(handler))

        with pytest.raises(TicketingException):
            await client.get_ticket(42)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_verify_connection(self, zendesk_client):
        status = await zendesk_client.verify_connection()

        assert status["success"] is True
        assert status["subdomain"] == "acme"


class TestZendeskTicketingClient:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_get_ticket_maps_to_domain(self, zendesk_client):
        ticket = await ZendeskTicketingClient(zendesk_client).get_ticket(42)

        assert ticket.id == 42
        assert ticket.tags == ("vip", "web")
        assert ticket.requester is None
        assert ticket.requester_id == 7

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_add_draft_response_formats_note(self, zendesk_client, zendesk_stub):
        await ZendeskTicketingClient(zendesk_client).add_draft_response(
            42,
            "Hi Jane,\n\nReset your password.",
            category=TicketCategory.ACCOUNT_MANAGEMENT,
            confidence=0.9,
            sources=["Password reset"]
        )

        comment = zendesk_stub.requests[-1][2]["ticket"]["comment"]
        assert comment["public"] is False
        assert comment["body"].startswith("📝 AI Draft Response\nCategory: account_management | Confidence: 90%")
        assert "Sources: Password reset" in comment["body"]
        assert comment["body"].endswith("Reset your password.")
