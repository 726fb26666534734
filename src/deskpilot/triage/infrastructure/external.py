"""
Triage External Service Adapters
==================================

Adapters for the external services (LLM, Vector Store, Zendesk) used by
the triage module.

Implements the interfaces defined in the application layer using concrete
external service implementations.
"""

from typing import Any, Dict, List, Optional, Tuple

from deskpilot.config import TicketCategory, TicketPriority
from deskpilot.infrastructure.llm import ILLMClient
from deskpilot.infrastructure.ticketing import DraftNoteMetadata, ZendeskClient
from deskpilot.infrastructure.vectorstore import IVectorStore, Document
from deskpilot.shared.infrastructure.logging import get_logger
from deskpilot.triage.application.services import (
    ICompletionProvider,
    IKnowledgeIndex,
    ITicketingClient
)
from deskpilot.triage.domain import (
    Requester,
    Ticket,
    KnowledgeResult,
    KnowledgeDocument
)

logger = get_logger(__name__)


class LLMCompletionProvider(ICompletionProvider):
    """
    Adapter that wraps the infrastructure LLM client.

    Each pipeline use gets its own token budget and temperature.
    """

    CLASSIFY = {"max_tokens": 50, "temperature": 0.1}
    EXTRACT = {"max_tokens": 200, "temperature": 0.2}
    GENERATE = {"max_tokens": 1000, "temperature": 0.5}
    SUMMARIZE = {"max_tokens": 300, "temperature": 0.3}

    def __init__(self, client: ILLMClient):
        self._client = client

    async def _complete(self, prompt: str, operation: str, options: Dict[str, Any]) -> str:
        response = await self._client.chat_completion(
            messages=[{"role": "user", "content": prompt}],
            operation=operation,
            **options
        )
        return response.content

    async def classify(self, prompt: str) -> str:
        return await self._complete(prompt, "classification", self.CLASSIFY)

    async def extract_structured(self, prompt: str) -> str:
        return await self._complete(prompt, "intent_extraction", self.EXTRACT)

    async def generate(self, prompt: str) -> str:
        return await self._complete(prompt, "draft_generation", self.GENERATE)

    async def summarize(self, prompt: str) -> str:
        return await self._complete(prompt, "summary", self.SUMMARIZE)

    async def verify_connection(self) -> Dict[str, Any]:
        """Send a trivial prompt and report whether it succeeded."""
        status = {"provider": self._client.provider, "model": self._client.model}
        try:
            await self._client.chat_completion(
                messages=[{"role": "user", "content": 'Say "ok"'}],
                max_tokens=10,
                operation="health_check"
            )
        except Exception as e:
            return {"success": False, "message": str(e), **status}
        return {"success": True, **status}


class MilvusKnowledgeIndex(IKnowledgeIndex):
    """
    Knowledge index backed by LLM embeddings and a vector store.
    """

    def __init__(self, llm_client: ILLMClient, vector_store: IVectorStore):
        self._llm = llm_client
        self._store = vector_store

    async def embed(self, text: str) -> List[float]:
        result = await self._llm.generate_embedding(text)
        return result.embedding

    async def query(
        self,
        embedding: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None
    ) -> List[KnowledgeResult]:
        hits = await self._store.search(embedding, top_k=top_k, filter=filter)
        return [
            KnowledgeResult(
                id=hit.id or "",
                text=hit.content,
                score=hit.score,
                title=hit.metadata.get("title") or None,
                url=hit.metadata.get("url") or None
            )
            for hit in hits
        ]

    async def upsert(self, entries: List[Tuple[KnowledgeDocument, List[float]]]) -> int:
        documents = [
            Document(
                id=document.id,
                text=document.content,
                embedding=embedding,
                metadata={
                    "title": document.title,
                    "url": document.url or "",
                    "category": document.category or "",
                    "last_updated": document.last_updated or "",
                }
            )
            for document, embedding in entries
        ]
        return await self._store.upsert(documents)

    async def delete(self, ids: List[str]) -> int:
        return await self._store.delete(ids)

    async def stats(self) -> Dict[str, Any]:
        stats = await self._store.get_stats()
        return {
            "total_vectors": stats.total_vectors,
            "dimension": stats.dimension,
            "collections": dict(stats.collections),
        }


class ZendeskTicketingClient(ITicketingClient):
    """
    Adapter that maps Zendesk records onto triage domain objects.
    """

    def __init__(self, client: ZendeskClient):
        self._client = client

    async def get_ticket(self, ticket_id: int) -> Ticket:
        ticket = await self._client.get_ticket(ticket_id)
        return Ticket(
            id=ticket.id,
            subject=ticket.subject,
            description=ticket.description,
            tags=tuple(ticket.tags),
            requester_id=ticket.requester_id
        )

    async def get_user(self, user_id: int) -> Requester:
        user = await self._client.get_user(user_id)
        return Requester(name=user.name, email=user.email or "")

    async def get_ticket_comments(self, ticket_id: int) -> List[str]:
        return await self._client.get_ticket_comments(ticket_id)

    async def add_tags(self, ticket_id: int, tags: List[str]) -> List[str]:
        return await self._client.add_tags(ticket_id, tags)

    async def add_internal_note(self, ticket_id: int, note: str) -> None:
        await self._client.add_internal_note(ticket_id, note)

    async def add_draft_response(
        self,
        ticket_id: int,
        draft: str,
        category: Optional[TicketCategory] = None,
        confidence: Optional[float] = None,
        sources: Optional[List[str]] = None
    ) -> None:
        metadata = DraftNoteMetadata(
            category=category.value if category else None,
            confidence=confidence,
            sources=list(sources or [])
        )
        await self._client.add_draft_response(ticket_id, draft, metadata)

    async def set_custom_field(self, ticket_id: int, field_id: int, value: str) -> None:
        await self._client.set_custom_field(ticket_id, field_id, value)

    async def set_priority(self, ticket_id: int, priority: TicketPriority) -> None:
        await self._client.set_priority(ticket_id, priority)

    async def verify_connection(self) -> Dict[str, Any]:
        return await self._client.verify_connection()

    async def close(self) -> None:
        await self._client.close()
