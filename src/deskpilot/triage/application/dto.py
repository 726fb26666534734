"""
Triage Application DTOs
========================

Data Transfer Objects for the triage API layer.

Pydantic models for request/response validation.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from deskpilot.config import TicketCategory, UrgencyLevel, Sentiment
from deskpilot.triage.domain import (
    DEFAULT_CUSTOMER_NAME,
    Requester,
    Ticket,
    KnowledgeDocument,
    KnowledgeResult,
    DraftResponse,
    ProcessingResult
)

UNKNOWN_REQUESTER_EMAIL = "unknown@example.com"
PREVIEW_LENGTH = 300


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    return text[:length] + ("..." if len(text) > length else "")


# ========== Webhook DTOs ==========

class WebhookRequester(BaseModel):
    """Requester block of a ticket webhook."""
    name: str = DEFAULT_CUSTOMER_NAME
    email: str = UNKNOWN_REQUESTER_EMAIL


class WebhookTicket(BaseModel):
    """Ticket block of a Zendesk webhook; strings are trimmed."""
    id: int = Field(..., description="Zendesk ticket ID")
    subject: str = Field(..., description="Ticket subject")
    description: str = Field(..., description="Ticket description")
    tags: List[str] = Field(default_factory=list)
    requester: WebhookRequester = Field(default_factory=WebhookRequester)

    @field_validator("subject", "description", mode="before")
    @classmethod
    def trim_required_text(cls, v: Any) -> str:
        """Coerce to a trimmed, non-blank string."""
        if v is None:
            raise ValueError("Field is required")
        text = str(v).strip()
        if not text:
            raise ValueError("Field must not be blank")
        return text

    @field_validator("tags", mode="before")
    @classmethod
    def default_tags(cls, v: Any) -> List[str]:
        return [str(tag) for tag in v] if isinstance(v, list) else []

    @field_validator("requester", mode="before")
    @classmethod
    def default_requester(cls, v: Any) -> Any:
        return v or WebhookRequester()

    def to_domain(self) -> Ticket:
        return Ticket(
            id=self.id,
            subject=self.subject,
            description=self.description,
            requester=Requester(name=self.requester.name, email=self.requester.email),
            tags=tuple(self.tags)
        )


class TicketWebhookPayload(BaseModel):
    """Body of a ticket webhook."""
    ticket: WebhookTicket


class WebhookAcceptedResponse(BaseModel):
    """Immediate acknowledgement of an asynchronous webhook."""
    success: bool = True
    ticket_id: int
    message: str = "Ticket received and processing started"
    timestamp: datetime = Field(default_factory=_utc_now)


class WebhookSyncResponse(BaseModel):
    """Summary returned by the synchronous webhook."""
    success: bool
    ticket_id: int
    category: TicketCategory
    urgency: UrgencyLevel
    sentiment: Sentiment
    knowledge_articles: int
    draft_generated: bool
    draft_confidence: Optional[float] = None
    processing_time_ms: int
    error: Optional[str] = None

    @classmethod
    def from_domain(cls, result: ProcessingResult) -> "WebhookSyncResponse":
        return cls(
            success=result.error is None,
            ticket_id=result.ticket_id,
            category=result.category,
            urgency=result.intent.urgency,
            sentiment=result.intent.sentiment,
            knowledge_articles=len(result.relevant_knowledge),
            draft_generated=result.draft_response is not None,
            draft_confidence=result.draft_response.confidence if result.draft_response else None,
            processing_time_ms=result.processing_time_ms,
            error=result.error
        )


# ========== Analysis Request DTOs ==========

class CategorizeRequest(BaseModel):
    """Request model for standalone categorization."""
    subject: str = ""
    description: str = ""
    tags: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def require_text(self) -> "CategorizeRequest":
        if not self.subject.strip() and not self.description.strip():
            raise ValueError("Subject or description required")
        return self


class DraftRequest(BaseModel):
    """Request model for standalone draft generation."""
    subject: str = "Support Request"
    description: str = Field(..., min_length=1, description="Customer message")
    customer_name: str = DEFAULT_CUSTOMER_NAME
    category: Optional[TicketCategory] = None

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Description required")
        if len(v) > 20000:
            raise ValueError("Description too long (max 20000 characters)")
        return v


class AnalyzeRequest(BaseModel):
    """Request model for a full analysis without ticket writes."""
    subject: str = ""
    description: str = Field(..., min_length=1, description="Customer message")
    customer_name: str = DEFAULT_CUSTOMER_NAME

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Description required")
        return v


class SummarizeRequest(BaseModel):
    """Request model for thread summarization."""
    messages: List[str] = Field(..., min_length=1, description="Messages, oldest first")


class BatchProcessRequest(BaseModel):
    """Request model for batch processing."""
    tickets: List[WebhookTicket] = Field(..., min_length=1, max_length=100)
    concurrency: Optional[int] = Field(default=None, ge=1, le=50)


# ========== Knowledge Base Request DTOs ==========

class KnowledgeDocumentInput(BaseModel):
    """Knowledge base article to index."""
    id: str = Field(..., min_length=1)
    title: str = ""
    content: str = Field(..., min_length=1)
    url: Optional[str] = None
    category: Optional[str] = None
    last_updated: Optional[str] = None

    def to_domain(self) -> KnowledgeDocument:
        return KnowledgeDocument(
            id=self.id,
            title=self.title,
            content=self.content,
            url=self.url,
            category=self.category,
            last_updated=self.last_updated or _utc_now().isoformat()
        )


class IndexDocumentsRequest(BaseModel):
    documents: List[KnowledgeDocumentInput]


class DeleteDocumentsRequest(BaseModel):
    ids: List[str] = Field(..., min_length=1)


# ========== Response DTOs ==========

class IntentInfo(BaseModel):
    """Intent analysis in API responses."""
    intent: str
    urgency: UrgencyLevel
    sentiment: Sentiment
    key_entities: List[str]


class KnowledgeInfo(BaseModel):
    """Knowledge result in API responses; score is a percentage."""
    id: str
    title: Optional[str] = None
    url: Optional[str] = None
    score: int
    preview: str

    @classmethod
    def from_domain(cls, result: KnowledgeResult) -> "KnowledgeInfo":
        return cls(
            id=result.id,
            title=result.title,
            url=result.url,
            score=round(result.score * 100),
            preview=_preview(result.text)
        )


class DraftInfo(BaseModel):
    """Draft reply in API responses."""
    draft: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    suggested_tags: List[str]
    requires_human_review: bool
    reasoning: str

    @classmethod
    def from_domain(cls, draft: DraftResponse) -> "DraftInfo":
        return cls(
            draft=draft.draft,
            confidence=draft.confidence,
            suggested_tags=draft.suggested_tags,
            requires_human_review=draft.requires_human_review,
            reasoning=draft.reasoning
        )


class ProcessingResultResponse(BaseModel):
    """Full pipeline result."""
    success: bool
    ticket_id: int
    category: TicketCategory
    intent: IntentInfo
    relevant_knowledge: List[KnowledgeInfo]
    draft_response: Optional[DraftInfo] = None
    processing_time_ms: int
    error: Optional[str] = None
    failed_stage: Optional[str] = None

    @classmethod
    def from_domain(cls, result: ProcessingResult) -> "ProcessingResultResponse":
        return cls(
            success=result.error is None,
            ticket_id=result.ticket_id,
            category=result.category,
            intent=IntentInfo(
                intent=result.intent.intent,
                urgency=result.intent.urgency,
                sentiment=result.intent.sentiment,
                key_entities=result.intent.key_entities
            ),
            relevant_knowledge=[KnowledgeInfo.from_domain(k) for k in result.relevant_knowledge],
            draft_response=DraftInfo.from_domain(result.draft_response) if result.draft_response else None,
            processing_time_ms=result.processing_time_ms,
            error=result.error,
            failed_stage=result.failed_stage.value if result.failed_stage else None
        )


class CategorizeResponse(BaseModel):
    category: TicketCategory
    intent: str
    urgency: UrgencyLevel
    sentiment: Sentiment
    key_entities: List[str]


class DraftReplyResponse(DraftInfo):
    """Standalone draft with the number of articles used."""
    sources_used: int


class AnalyzeResponse(BaseModel):
    category: TicketCategory
    intent: IntentInfo
    relevant_knowledge: List[KnowledgeInfo]
    draft_response: DraftInfo
    processing_time_ms: int


class SummarizeResponse(BaseModel):
    summary: str
    message_count: int


class TicketSummaryResponse(SummarizeResponse):
    ticket_id: int


class KnowledgeSearchResponse(BaseModel):
    query: str
    results: List[KnowledgeInfo]


class IndexErrorInfo(BaseModel):
    id: str
    error: str


class IndexDocumentsResponse(BaseModel):
    success: bool
    indexed: int
    errors: List[IndexErrorInfo]


class DeleteDocumentsResponse(BaseModel):
    success: bool = True
    deleted: int


class KnowledgeStatsResponse(BaseModel):
    total_vectors: int
    dimension: int
    collections: Dict[str, int] = Field(default_factory=dict)


class BatchProcessResponse(BaseModel):
    processed: int
    failed: int
    results: List[ProcessingResultResponse]
