"""
Triage Application Services
============================

Application services for the ticket processing pipeline.

Each service wraps one collaborator call with prompt building and
tolerant parsing of the result. The pipeline itself lives in
``pipeline.py``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from deskpilot.config import TicketCategory, UrgencyLevel, Sentiment, TicketPriority
from deskpilot.core import ValidationException
from deskpilot.shared.infrastructure.logging import get_logger
from deskpilot.triage.domain import (
    Ticket,
    Requester,
    IntentAnalysis,
    KnowledgeResult,
    KnowledgeDocument,
    DraftResponse,
    ParsedOk,
    parse_json_object,
    normalize_category,
    CategorizationPromptBuilder,
    IntentPromptBuilder,
    DraftPromptBuilder,
    SummaryPromptBuilder
)
from deskpilot.triage.domain.parsing import (
    coerce_choice,
    coerce_entities,
    coerce_confidence,
    coerce_text
)

logger = get_logger(__name__)


# ========== Collaborator Interfaces ==========

class ICompletionProvider(ABC):
    """Text-in, text-out completion calls, one per pipeline use."""

    @abstractmethod
    async def classify(self, prompt: str) -> str:
        """Return a short label."""

    @abstractmethod
    async def extract_structured(self, prompt: str) -> str:
        """Return text expected to contain a JSON object."""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Return long-form text expected to contain a JSON object."""

    @abstractmethod
    async def summarize(self, prompt: str) -> str:
        """Return a short prose summary."""


class IKnowledgeIndex(ABC):
    """Embedding generator and similarity store for knowledge articles."""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Embed text into the index's vector space."""

    @abstractmethod
    async def query(
        self,
        embedding: List[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None
    ) -> List[KnowledgeResult]:
        """Nearest neighbours, best first."""

    @abstractmethod
    async def upsert(self, entries: List[Tuple[KnowledgeDocument, List[float]]]) -> int:
        """Store documents with their embeddings. Returns the number written."""

    @abstractmethod
    async def delete(self, ids: List[str]) -> int:
        """Remove documents by ID. Returns the number removed."""

    @abstractmethod
    async def stats(self) -> Dict[str, Any]:
        """Vector counts and dimension."""


class ITicketingClient(ABC):
    """Reads and writes against the external ticketing system."""

    @abstractmethod
    async def get_ticket(self, ticket_id: int) -> Ticket:
        """Fetch a ticket."""

    @abstractmethod
    async def get_user(self, user_id: int) -> Requester:
        """Fetch a requester."""

    @abstractmethod
    async def get_ticket_comments(self, ticket_id: int) -> List[str]:
        """Comment bodies, oldest first."""

    @abstractmethod
    async def add_tags(self, ticket_id: int, tags: List[str]) -> List[str]:
        """Merge tags into the ticket."""

    @abstractmethod
    async def add_internal_note(self, ticket_id: int, note: str) -> None:
        """Append a private comment."""

    @abstractmethod
    async def add_draft_response(
        self,
        ticket_id: int,
        draft: str,
        category: Optional[TicketCategory] = None,
        confidence: Optional[float] = None,
        sources: Optional[List[str]] = None
    ) -> None:
        """Append a draft reply as a private comment."""

    @abstractmethod
    async def set_custom_field(self, ticket_id: int, field_id: int, value: str) -> None:
        """Set a custom field value."""

    @abstractmethod
    async def set_priority(self, ticket_id: int, priority: TicketPriority) -> None:
        """Set the ticket priority."""


# ========== Application Services ==========

class TicketClassifier:
    """Assigns one of the fixed categories to a ticket."""

    def __init__(self, provider: ICompletionProvider):
        self._provider = provider

    async def classify(
        self,
        subject: str,
        description: str,
        tags: Optional[Sequence[str]] = None
    ) -> TicketCategory:
        """
        Classify a ticket.

        Labels outside the category set fall back to ``general_inquiry``.

        Raises:
            LLMException: If the provider call fails
        """
        prompt = CategorizationPromptBuilder.build_prompt(subject, description, tags)
        raw = await self._provider.classify(prompt)

        category = normalize_category(raw)
        if category is None:
            logger.warning(
                "Invalid category label, defaulting to general_inquiry",
                extra={"raw_label": (raw or "")[:100]}
            )
            return TicketCategory.GENERAL_INQUIRY

        logger.debug("Ticket categorized", extra={"category": category.value})
        return category


class IntentExtractor:
    """Extracts intent, urgency, sentiment and key entities."""

    def __init__(self, provider: ICompletionProvider):
        self._provider = provider

    async def extract(self, text: str) -> IntentAnalysis:
        """
        Analyze ticket text.

        Malformed output never raises; each field falls back to its default
        independently.

        Raises:
            LLMException: If the provider call fails
        """
        raw = await self._provider.extract_structured(IntentPromptBuilder.build_prompt(text))

        outcome = parse_json_object(raw)
        if not isinstance(outcome, ParsedOk):
            logger.warning(
                "Failed to parse intent analysis, using defaults",
                extra={"reason": outcome.reason, "response": (raw or "")[:200]}
            )
            return IntentAnalysis.default()

        data = outcome.value
        defaults = IntentAnalysis.default()
        entities = data.get("keyEntities", data.get("key_entities"))

        return IntentAnalysis(
            intent=coerce_text(data.get("intent")) or defaults.intent,
            urgency=coerce_choice(data.get("urgency"), UrgencyLevel, defaults.urgency),
            sentiment=coerce_choice(data.get("sentiment"), Sentiment, defaults.sentiment),
            key_entities=coerce_entities(entities)
        )


@dataclass
class IndexingReport:
    """Outcome of a bulk indexing call."""
    indexed: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)


class KnowledgeRetriever:
    """
    Semantic retrieval over the knowledge index with keyword re-ranking.

    Retrieval never raises: any embedding or index failure is logged and
    yields an empty list so the pipeline can still draft a reply.
    """

    KEYWORD_BOOST = 0.1
    HYBRID_CANDIDATES = 10
    HYBRID_MIN_SCORE = 0.5
    HYBRID_RESULTS = 5
    INDEX_BATCH_SIZE = 100

    def __init__(self, index: IKnowledgeIndex):
        self._index = index

    async def retrieve(
        self,
        query: str,
        top_k: int = 5,
        min_score: float = 0.7,
        filter: Optional[Dict[str, Any]] = None
    ) -> List[KnowledgeResult]:
        """Nearest articles scoring at least ``min_score``."""
        try:
            embedding = await self._index.embed(query)
            matches = await self._index.query(embedding, top_k=top_k, filter=filter)
        except Exception as e:
            logger.error(
                "Knowledge retrieval failed",
                extra={"error": str(e), "query": query[:100]}
            )
            return []

        relevant = [match for match in matches if match.score >= min_score and match.text]
        logger.info(
            "Knowledge retrieved",
            extra={
                "query": query[:100],
                "total_matches": len(matches),
                "above_threshold": len(relevant)
            }
        )
        return relevant

    async def hybrid_search(
        self,
        query: str,
        keywords: Optional[Sequence[str]] = None
    ) -> List[KnowledgeResult]:
        """
        Semantic search re-ranked by keyword hits.

        Each keyword found in a result's text or title (case-insensitive
        substring) adds KEYWORD_BOOST to its score. The boost is uncapped,
        so scores may exceed 1.0. Ties keep their semantic order.
        """
        results = await self.retrieve(
            query, top_k=self.HYBRID_CANDIDATES, min_score=self.HYBRID_MIN_SCORE
        )

        terms = [keyword.strip().lower() for keyword in keywords or [] if keyword and keyword.strip()]
        if not terms:
            return results[:self.HYBRID_RESULTS]

        boosted = []
        for result in results:
            text = result.text.lower()
            title = (result.title or "").lower()
            hits = sum(1 for term in terms if term in text or term in title)
            boosted.append(replace(result, score=result.score + self.KEYWORD_BOOST * hits))

        # sorted() is stable, so equal scores keep their semantic order
        ranked = sorted(boosted, key=lambda result: result.score, reverse=True)
        return ranked[:self.HYBRID_RESULTS]

    async def index_documents(self, documents: List[KnowledgeDocument]) -> IndexingReport:
        """
        Embed and upsert documents in batches.

        Per-document embedding failures and whole-batch upsert failures are
        collected in the report instead of raised.
        """
        report = IndexingReport()
        logger.info("Indexing documents", extra={"document_count": len(documents)})

        for start in range(0, len(documents), self.INDEX_BATCH_SIZE):
            batch = documents[start:start + self.INDEX_BATCH_SIZE]
            entries = []
            for document in batch:
                try:
                    entries.append((document, await self._index.embed(document.embedding_text)))
                except Exception as e:
                    report.errors.append({"id": document.id, "error": str(e)})

            if not entries:
                continue

            try:
                report.indexed += await self._index.upsert(entries)
            except Exception as e:
                logger.error(
                    "Batch indexing failed",
                    extra={"batch_start": start, "error": str(e)}
                )
                report.errors.extend({"id": document.id, "error": str(e)} for document, _ in entries)

        logger.info(
            "Indexing complete",
            extra={"indexed": report.indexed, "error_count": len(report.errors)}
        )
        return report

    async def delete_documents(self, ids: List[str]) -> int:
        """
        Remove documents from the index.

        Raises:
            VectorStoreException: If the index call fails
        """
        deleted = await self._index.delete(ids)
        logger.info("Documents deleted", extra={"requested": len(ids), "deleted": deleted})
        return deleted

    async def get_stats(self) -> Dict[str, Any]:
        return await self._index.stats()

    async def verify_connection(self) -> Dict[str, Any]:
        """Report whether the index answers a stats call."""
        try:
            stats = await self._index.stats()
        except Exception as e:
            return {"success": False, "message": str(e)}
        return {"success": True, "vector_count": stats.get("total_vectors", 0)}


class DraftGenerator:
    """Drafts a reply to the customer from ticket and knowledge context."""

    RAW_FALLBACK_CONFIDENCE = 0.5
    MISSING_CONFIDENCE = 0.7
    RAW_FALLBACK_REASONING = "Auto-generated from raw LLM response"

    def __init__(self, provider: ICompletionProvider):
        self._provider = provider

    async def generate(
        self,
        subject: str,
        description: str,
        customer_name: str,
        category: Optional[TicketCategory] = None,
        sentiment: Optional[Sentiment] = None,
        context: Sequence[KnowledgeResult] = ()
    ) -> DraftResponse:
        """
        Generate a draft reply.

        Unparseable output is returned as the draft itself with confidence
        0.5 and human review required.

        Raises:
            LLMException: If the provider call fails
        """
        prompt = DraftPromptBuilder.build_prompt(
            subject=subject,
            description=description,
            customer_name=customer_name,
            category=category,
            sentiment=sentiment,
            context=context
        )
        raw = await self._provider.generate(prompt)

        outcome = parse_json_object(raw)
        if not isinstance(outcome, ParsedOk):
            logger.warning(
                "Failed to parse draft response, using raw text",
                extra={"reason": outcome.reason}
            )
            return DraftResponse(
                draft=raw,
                confidence=self.RAW_FALLBACK_CONFIDENCE,
                suggested_tags=[],
                requires_human_review=True,
                reasoning=self.RAW_FALLBACK_REASONING
            )

        data = outcome.value
        review = data.get("requiresHumanReview", data.get("requires_human_review"))
        tags = data.get("suggestedTags", data.get("suggested_tags"))

        return DraftResponse(
            draft=coerce_text(data.get("draft")) or raw,
            confidence=coerce_confidence(data.get("confidence"), self.MISSING_CONFIDENCE),
            suggested_tags=[tag for tag in tags if isinstance(tag, str)] if isinstance(tags, list) else [],
            requires_human_review=review if isinstance(review, bool) else True,
            reasoning=data.get("reasoning") if isinstance(data.get("reasoning"), str) else ""
        )


class ThreadSummarizer:
    """Summarizes a conversation thread."""

    def __init__(self, provider: ICompletionProvider):
        self._provider = provider

    async def summarize(self, messages: List[str]) -> str:
        """
        Raises:
            ValidationException: If there are no non-blank messages
            LLMException: If the provider call fails
        """
        thread = [message for message in messages if message and message.strip()]
        if not thread:
            raise ValidationException("At least one message is required to summarize")

        summary = await self._provider.summarize(SummaryPromptBuilder.build_prompt(thread))
        return summary.strip()
