"""
Ticketing Infrastructure
========================

Async Zendesk REST client.

Covers the ticket reads and writes used by the pipeline:
- Fetch tickets, requesters and comment threads
- Merge tags, append internal notes, set custom fields and priority
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

from deskpilot.config import settings, TicketPriority
from deskpilot.core import ConfigurationException, ResourceNotFoundException, TicketingException
from deskpilot.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

MAX_NOTE_SOURCES = 3


@dataclass
class ZendeskTicket:
    """Ticket record as returned by the Zendesk API."""
    id: int
    subject: str
    description: str
    status: str
    priority: Optional[str]
    tags: List[str] = field(default_factory=list)
    requester_id: Optional[int] = None
    custom_fields: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ZendeskTicket":
        return cls(
            id=int(data["id"]),
            subject=data.get("subject") or "",
            description=data.get("description") or "",
            status=data.get("status") or "new",
            priority=data.get("priority"),
            tags=list(data.get("tags") or []),
            requester_id=data.get("requester_id"),
            custom_fields=list(data.get("custom_fields") or []),
        )


@dataclass
class ZendeskUser:
    """Zendesk end user or agent."""
    id: int
    name: str
    email: Optional[str] = None


class TicketComment(BaseModel):
    body: str
    public: bool = False


class CustomFieldValue(BaseModel):
    id: int
    value: Optional[str]


class TicketUpdate(BaseModel):
    """Partial ticket update; unset fields are not sent."""
    comment: Optional[TicketComment] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    tags: Optional[List[str]] = None
    custom_fields: Optional[List[CustomFieldValue]] = None


@dataclass
class DraftNoteMetadata:
    """Context printed above an AI draft note."""
    category: Optional[str] = None
    confidence: Optional[float] = None
    sources: List[str] = field(default_factory=list)


def format_draft_note(draft: str, metadata: Optional[DraftNoteMetadata] = None) -> str:
    """Render the internal note body for an AI draft."""
    lines = ["📝 AI Draft Response"]

    if metadata:
        details = []
        if metadata.category:
            details.append(f"Category: {metadata.category}")
        if metadata.confidence is not None:
            details.append(f"Confidence: {round(metadata.confidence * 100)}%")
        if details:
            lines.append(" | ".join(details))
        sources = [source for source in metadata.sources if source][:MAX_NOTE_SOURCES]
        if sources:
            lines.append(f"Sources: {', '.join(sources)}")

    lines.append("")
    lines.append(draft)
    return "\n".join(lines)


def merge_tags(existing: List[str], new: List[str]) -> List[str]:
    """Union of both tag lists, deduplicated, keeping first-seen order."""
    return list(dict.fromkeys([*existing, *new]))


class ZendeskClient:
    """
    Zendesk API v2 client using API token authentication.

    The HTTP client is created lazily and reused; call ``close()`` on
    shutdown.
    """

    def __init__(
        self,
        subdomain: Optional[str] = None,
        email: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._subdomain = subdomain or settings.zendesk_subdomain
        self._email = email or settings.zendesk_email
        self._api_token = api_token or settings.zendesk_api_token
        if not (self._subdomain and self._email and self._api_token):
            raise ConfigurationException("Zendesk subdomain, email and API token must be configured")

        self._base_url = f"https://{self._subdomain}.zendesk.com/api/v2"
        self._timeout = timeout_seconds or settings.zendesk_timeout_seconds
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    @property
    def subdomain(self) -> str:
        return self._subdomain

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self._base_url,
                auth=(f"{self._email}/token", self._api_token),
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
                transport=self._transport
            )
        return self._http_client

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        resource: str = "Resource",
        resource_id: Optional[Any] = None
    ) -> Dict[str, Any]:
        client = await self._get_client()

        try:
            response = await client.request(method, path, json=json)
        except httpx.HTTPError as e:
            raise TicketingException(f"{method} {path} failed: {str(e)}")

        if response.status_code == 404:
            raise ResourceNotFoundException(resource, str(resource_id) if resource_id is not None else None)
        if response.status_code >= 400:
            raise TicketingException(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
                details={"body": response.text[:500]}
            )

        if not response.content:
            return {}
        return response.json()

    async def get_ticket(self, ticket_id: int) -> ZendeskTicket:
        """Fetch a ticket by ID."""
        data = await self._request(
            "GET", f"/tickets/{ticket_id}.json", resource="Ticket", resource_id=ticket_id
        )
        return ZendeskTicket.from_api(data["ticket"])

    async def get_user(self, user_id: int) -> ZendeskUser:
        """Fetch a user by ID."""
        data = await self._request(
            "GET", f"/users/{user_id}.json", resource="User", resource_id=user_id
        )
        user = data["user"]
        return ZendeskUser(id=int(user["id"]), name=user.get("name") or "", email=user.get("email"))

    async def get_ticket_comments(self, ticket_id: int) -> List[str]:
        """Fetch the plain-text bodies of a ticket's comments, oldest first."""
        data = await self._request(
            "GET", f"/tickets/{ticket_id}/comments.json", resource="Ticket", resource_id=ticket_id
        )
        return [
            comment.get("plain_body") or comment.get("body") or ""
            for comment in data.get("comments", [])
        ]

    async def update_ticket(self, ticket_id: int, update: TicketUpdate) -> ZendeskTicket:
        """Apply a partial update to a ticket."""
        data = await self._request(
            "PUT",
            f"/tickets/{ticket_id}.json",
            json={"ticket": update.model_dump(exclude_none=True)},
            resource="Ticket",
            resource_id=ticket_id
        )
        return ZendeskTicket.from_api(data["ticket"])

    async def add_tags(self, ticket_id: int, tags: List[str]) -> List[str]:
        """Merge ``tags`` into the ticket's existing tags. Returns the merged list."""
        ticket = await self.get_ticket(ticket_id)
        merged = merge_tags(ticket.tags, tags)
        await self.update_ticket(ticket_id, TicketUpdate(tags=merged))
        logger.debug("Tags added", extra={"ticket_id": ticket_id, "tag_count": len(merged)})
        return merged

    async def add_internal_note(self, ticket_id: int, note: str) -> None:
        """Append a comment that is not visible to the customer."""
        await self.update_ticket(
            ticket_id, TicketUpdate(comment=TicketComment(body=note, public=False))
        )

    async def add_draft_response(
        self,
        ticket_id: int,
        draft: str,
        metadata: Optional[DraftNoteMetadata] = None
    ) -> None:
        """Append an AI draft as an internal note."""
        await self.add_internal_note(ticket_id, format_draft_note(draft, metadata))

    async def set_custom_field(self, ticket_id: int, field_id: int, value: str) -> None:
        await self.update_ticket(
            ticket_id, TicketUpdate(custom_fields=[CustomFieldValue(id=field_id, value=value)])
        )

    async def set_priority(self, ticket_id: int, priority: TicketPriority) -> None:
        await self.update_ticket(ticket_id, TicketUpdate(priority=TicketPriority(priority).value))

    async def verify_connection(self) -> Dict[str, Any]:
        """Check credentials against the authenticated user endpoint."""
        try:
            data = await self._request("GET", "/users/me.json", resource="User")
        except (TicketingException, ResourceNotFoundException) as e:
            return {"success": False, "subdomain": self._subdomain, "message": str(e)}

        user = data.get("user", {})
        return {
            "success": bool(user.get("id")),
            "subdomain": self._subdomain,
            "message": f"Authenticated as {user.get('email', 'unknown')}",
        }

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
