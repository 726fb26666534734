"""
Triage Domain Entities
======================

Domain entities for the ticket processing pipeline.

Contains pure Python business objects: the incoming ticket, the
analysis produced for it, and the result returned to callers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Tuple

from deskpilot.config import TicketCategory, UrgencyLevel, Sentiment

# Substituted when a requester is missing or has no name
DEFAULT_CUSTOMER_NAME = "Customer"


@dataclass(frozen=True)
class Requester:
    """Person who opened the ticket."""
    name: str
    email: str


@dataclass(frozen=True)
class Ticket:
    """
    Support ticket as received from the ticketing system.

    Immutable once constructed; the pipeline never modifies it.
    """
    id: int
    subject: str
    description: str
    requester: Optional[Requester] = None
    tags: Tuple[str, ...] = ()
    requester_id: Optional[int] = None

    @property
    def customer_name(self) -> str:
        if self.requester and self.requester.name:
            return self.requester.name
        return DEFAULT_CUSTOMER_NAME

    @property
    def search_query(self) -> str:
        """Text used for knowledge retrieval."""
        return f"{self.subject}\n{self.description}"

    @property
    def intent_text(self) -> str:
        """Text used for intent extraction."""
        return self.description or self.subject


@dataclass
class IntentAnalysis:
    """What the customer wants, how urgent it is, and how they feel."""
    intent: str
    urgency: UrgencyLevel
    sentiment: Sentiment
    key_entities: List[str] = field(default_factory=list)

    @classmethod
    def default(cls) -> "IntentAnalysis":
        return cls(
            intent="unknown",
            urgency=UrgencyLevel.MEDIUM,
            sentiment=Sentiment.NEUTRAL,
            key_entities=[]
        )


@dataclass
class KnowledgeResult:
    """
    Knowledge base snippet matched to a ticket.

    ``score`` is a ranking signal. After keyword boosting it may exceed 1.0
    and must not be read as a probability.
    """
    id: str
    text: str
    score: float
    title: Optional[str] = None
    url: Optional[str] = None


@dataclass
class KnowledgeDocument:
    """Document submitted for indexing."""
    id: str
    title: str
    content: str
    url: Optional[str] = None
    category: Optional[str] = None
    last_updated: Optional[str] = None

    @property
    def embedding_text(self) -> str:
        if self.title:
            return f"{self.title}\n\n{self.content}"
        return self.content


@dataclass
class DraftResponse:
    """Suggested reply with the model's own confidence."""
    draft: str
    confidence: float
    suggested_tags: List[str] = field(default_factory=list)
    requires_human_review: bool = True
    reasoning: str = ""

    def __post_init__(self):
        """Clamp confidence into [0, 1]."""
        self.confidence = min(1.0, max(0.0, float(self.confidence)))


class PipelineStage(str, Enum):
    """Stages a ticket passes through, in order."""
    FETCH = "fetch"
    CATEGORIZED = "categorized"
    INTENT_EXTRACTED = "intent_extracted"
    KNOWLEDGE_RETRIEVED = "knowledge_retrieved"
    TAGS_DISPATCHED = "tags_dispatched"
    DRAFT_GENERATED = "draft_generated"
    CONDITIONALLY_COMMITTED = "conditionally_committed"
    PRIORITY_DISPATCHED = "priority_dispatched"
    DONE = "done"


@dataclass(frozen=True)
class ProcessingResult:
    """
    Outcome of processing one ticket.

    ``error`` is the only failure signal; ``failed_stage`` is the stage that
    was in progress when the error was recorded.
    """
    ticket_id: int
    category: TicketCategory
    intent: IntentAnalysis
    relevant_knowledge: Tuple[KnowledgeResult, ...]
    draft_response: Optional[DraftResponse]
    processing_time_ms: int
    error: Optional[str] = None
    failed_stage: Optional[PipelineStage] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None
