"""
Ticket Processing Pipeline
==========================

Runs a ticket through categorization, intent extraction, knowledge
retrieval and draft generation, then commits the results back to the
ticketing system.

Stages 1-4 run strictly in order. Tag, custom field and priority writes
are dispatched as background tasks; only the draft note is awaited.
"""

import asyncio
import re
import time
from collections import deque
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from functools import partial
from typing import Awaitable, Deque, List, Optional, Sequence, Set

from deskpilot.config import (
    settings as app_settings,
    Settings,
    TicketCategory,
    UrgencyLevel,
    URGENCY_PRIORITY_ESCALATION
)
from deskpilot.core import ValidationException
from deskpilot.shared.infrastructure.logging import get_logger, log_latency
from deskpilot.triage.application.services import (
    TicketClassifier,
    IntentExtractor,
    KnowledgeRetriever,
    DraftGenerator,
    ITicketingClient
)
from deskpilot.triage.domain import (
    Ticket,
    IntentAnalysis,
    KnowledgeResult,
    DraftResponse,
    PipelineStage,
    ProcessingResult
)

logger = get_logger(__name__)

MAX_ENTITY_TAGS = 3
MAX_ENTITY_TAG_LENGTH = 20
MAX_DRAFT_SOURCES = 3

_NON_TAG_CHARS = re.compile(r"[^a-z0-9]")


@dataclass(frozen=True)
class ProcessorConfig:
    """Options controlling what the pipeline writes back."""
    add_draft_to_ticket: bool = True
    add_tags_to_ticket: bool = True
    min_confidence_for_draft: float = 0.6
    category_field_id: Optional[int] = None
    batch_concurrency: int = 5

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "ProcessorConfig":
        settings = settings or app_settings
        return cls(
            add_draft_to_ticket=settings.add_draft_to_ticket,
            add_tags_to_ticket=settings.add_tags_to_ticket,
            min_confidence_for_draft=settings.min_confidence_for_draft,
            category_field_id=settings.zendesk_category_field_id,
            batch_concurrency=settings.batch_concurrency
        )


# ========== Background Side Effects ==========

@dataclass(frozen=True)
class DeadLetter:
    """A background write that failed."""
    effect: str
    ticket_id: int
    error: str
    failed_at: datetime


class BackgroundDispatcher:
    """
    Runs best-effort writes as background tasks.

    Failures are logged and kept in a bounded dead-letter log; they never
    reach the caller that dispatched them.
    """

    def __init__(self, max_dead_letters: int = 100):
        self._tasks: Set[asyncio.Task] = set()
        self._dead_letters: Deque[DeadLetter] = deque(maxlen=max_dead_letters)

    def dispatch(self, effect: str, ticket_id: int, operation: Awaitable) -> asyncio.Task:
        """Schedule ``operation`` without awaiting it."""
        task = asyncio.ensure_future(operation)
        self._tasks.add(task)
        task.add_done_callback(partial(self._on_done, effect, ticket_id))
        return task

    def _on_done(self, effect: str, ticket_id: int, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return

        error = task.exception()
        if error is None:
            logger.debug("Background write completed", extra={"effect": effect, "ticket_id": ticket_id})
            return

        logger.warning(
            f"Failed to {effect}",
            extra={"effect": effect, "ticket_id": ticket_id, "error": str(error)}
        )
        self._dead_letters.append(DeadLetter(
            effect=effect,
            ticket_id=ticket_id,
            error=str(error),
            failed_at=datetime.now(timezone.utc)
        ))

    @property
    def pending(self) -> int:
        return len(self._tasks)

    @property
    def dead_letters(self) -> List[DeadLetter]:
        return list(self._dead_letters)

    async def drain(self) -> None:
        """Wait for every outstanding write, including ones scheduled meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


# ========== Tag Synthesis ==========

def sanitize_entity(entity: str) -> str:
    """Lower-case, replace non-alphanumerics with ``_``, cap the length."""
    return _NON_TAG_CHARS.sub("_", entity.lower())[:MAX_ENTITY_TAG_LENGTH]


def generate_tags(category: TicketCategory, intent: IntentAnalysis) -> List[str]:
    """Tags recording the AI analysis on the ticket."""
    tags = [
        f"ai_category:{category.value}",
        f"ai_urgency:{intent.urgency.value}",
        f"ai_sentiment:{intent.sentiment.value}",
        "ai_processed",
    ]
    for entity in intent.key_entities[:MAX_ENTITY_TAGS]:
        sanitized = sanitize_entity(entity)
        if sanitized:
            tags.append(f"ai_entity:{sanitized}")
    return tags


# ========== Orchestrator ==========

class TicketProcessor:
    """
    Orchestrates the ticket processing pipeline.

    ``process`` never raises: the first failing stage stops forward
    progress and its message is returned on ``ProcessingResult.error``.
    """

    def __init__(
        self,
        classifier: TicketClassifier,
        intent_extractor: IntentExtractor,
        retriever: KnowledgeRetriever,
        draft_generator: DraftGenerator,
        ticketing: ITicketingClient,
        config: Optional[ProcessorConfig] = None,
        dispatcher: Optional[BackgroundDispatcher] = None
    ):
        self._classifier = classifier
        self._intent_extractor = intent_extractor
        self._retriever = retriever
        self._draft_generator = draft_generator
        self._ticketing = ticketing
        self._config = config or ProcessorConfig.from_settings()
        self._dispatcher = dispatcher or BackgroundDispatcher()

    @property
    def config(self) -> ProcessorConfig:
        return self._config

    @property
    def dispatcher(self) -> BackgroundDispatcher:
        return self._dispatcher

    async def process(self, ticket: Ticket) -> ProcessingResult:
        """Process one ticket and commit the results back to it."""
        start_time = time.perf_counter()
        logger.info(
            "Processing ticket",
            extra={"ticket_id": ticket.id, "subject": ticket.subject[:100]}
        )

        category = TicketCategory.GENERAL_INQUIRY
        intent = IntentAnalysis.default()
        knowledge: List[KnowledgeResult] = []
        draft: Optional[DraftResponse] = None
        # Stage in progress; DONE once every stage has run
        stage = PipelineStage.CATEGORIZED
        error: Optional[str] = None
        failed_stage: Optional[PipelineStage] = None

        try:
            with log_latency(logger, "categorize", ticket_id=ticket.id):
                category = await self._classifier.classify(
                    ticket.subject, ticket.description, ticket.tags
                )

            stage = PipelineStage.INTENT_EXTRACTED
            with log_latency(logger, "extract_intent", ticket_id=ticket.id):
                intent = await self._intent_extractor.extract(ticket.intent_text)

            stage = PipelineStage.KNOWLEDGE_RETRIEVED
            with log_latency(logger, "retrieve_knowledge", ticket_id=ticket.id):
                knowledge = await self._retriever.hybrid_search(
                    ticket.search_query, intent.key_entities
                )

            stage = PipelineStage.TAGS_DISPATCHED
            self._dispatch_analysis(ticket.id, category, intent)

            stage = PipelineStage.DRAFT_GENERATED
            with log_latency(logger, "generate_draft", ticket_id=ticket.id):
                draft = await self._draft_generator.generate(
                    subject=ticket.subject,
                    description=ticket.description,
                    customer_name=ticket.customer_name,
                    category=category,
                    sentiment=intent.sentiment,
                    context=knowledge
                )

        except Exception as e:
            error = str(e) or e.__class__.__name__
            failed_stage = stage
            logger.error(
                "Failed to process ticket",
                extra={"ticket_id": ticket.id, "stage": stage.value, "error": error}
            )

        else:
            stage = PipelineStage.CONDITIONALLY_COMMITTED
            commit_error = await self._commit_draft(ticket, category, draft, knowledge)
            if commit_error:
                error = commit_error
                failed_stage = stage

            stage = PipelineStage.PRIORITY_DISPATCHED
            self._dispatch_priority(ticket.id, intent.urgency)
            stage = PipelineStage.DONE

        processing_time_ms = int((time.perf_counter() - start_time) * 1000)
        logger.info(
            "Ticket processed",
            extra={
                "ticket_id": ticket.id,
                "category": category.value,
                "stage": stage.value,
                "processing_time_ms": processing_time_ms,
                "success": error is None
            }
        )

        return ProcessingResult(
            ticket_id=ticket.id,
            category=category,
            intent=intent,
            relevant_knowledge=tuple(knowledge),
            draft_response=draft,
            processing_time_ms=processing_time_ms,
            error=error,
            failed_stage=failed_stage
        )

    def _dispatch_analysis(self, ticket_id: int, category: TicketCategory, intent: IntentAnalysis) -> None:
        if self._config.add_tags_to_ticket:
            self._dispatcher.dispatch(
                "add tags",
                ticket_id,
                self._ticketing.add_tags(ticket_id, generate_tags(category, intent))
            )

        if self._config.category_field_id:
            self._dispatcher.dispatch(
                "set category field",
                ticket_id,
                self._ticketing.set_custom_field(
                    ticket_id, self._config.category_field_id, category.value
                )
            )

    async def _commit_draft(
        self,
        ticket: Ticket,
        category: TicketCategory,
        draft: DraftResponse,
        knowledge: Sequence[KnowledgeResult]
    ) -> Optional[str]:
        """Write the draft note if enabled and confident enough. Returns the error, if any."""
        if not self._config.add_draft_to_ticket:
            return None

        if draft.confidence < self._config.min_confidence_for_draft:
            logger.info(
                "Draft below confidence threshold, not committed",
                extra={
                    "ticket_id": ticket.id,
                    "confidence": draft.confidence,
                    "threshold": self._config.min_confidence_for_draft
                }
            )
            return None

        try:
            await self._ticketing.add_draft_response(
                ticket.id,
                draft.draft,
                category=category,
                confidence=draft.confidence,
                sources=[item.title or item.id for item in knowledge[:MAX_DRAFT_SOURCES]]
            )
        except Exception as e:
            logger.error(
                "Failed to add draft note",
                extra={"ticket_id": ticket.id, "error": str(e)}
            )
            return f"Draft note not saved: {e}"

        logger.info("Draft note added", extra={"ticket_id": ticket.id})
        return None

    def _dispatch_priority(self, ticket_id: int, urgency: UrgencyLevel) -> None:
        priority = URGENCY_PRIORITY_ESCALATION.get(urgency)
        if priority is None:
            return
        logger.info(
            "Escalating ticket priority",
            extra={"ticket_id": ticket_id, "urgency": urgency.value, "priority": priority.value}
        )
        self._dispatcher.dispatch(
            "set priority",
            ticket_id,
            self._ticketing.set_priority(ticket_id, priority)
        )

    async def process_batch(
        self,
        tickets: Sequence[Ticket],
        concurrency: Optional[int] = None
    ) -> List[ProcessingResult]:
        """
        Process tickets in consecutive chunks of ``concurrency``.

        Tickets within a chunk run concurrently; the next chunk starts once
        the whole chunk has finished. Results follow input order.

        Raises:
            ValidationException: If concurrency is below 1
        """
        concurrency = self._config.batch_concurrency if concurrency is None else concurrency
        if concurrency < 1:
            raise ValidationException("Batch concurrency must be at least 1", {"concurrency": concurrency})

        results: List[ProcessingResult] = []
        for start in range(0, len(tickets), concurrency):
            chunk = tickets[start:start + concurrency]
            results.extend(await asyncio.gather(*(self.process(ticket) for ticket in chunk)))

        logger.info(
            "Batch processed",
            extra={"ticket_count": len(tickets), "concurrency": concurrency}
        )
        return results

    async def reprocess(self, ticket_id: int) -> ProcessingResult:
        """Fetch a ticket from the ticketing system and process it again."""
        start_time = time.perf_counter()

        try:
            ticket = await self._ticketing.get_ticket(ticket_id)
        except Exception as e:
            logger.error(
                "Failed to fetch ticket for reprocessing",
                extra={"ticket_id": ticket_id, "error": str(e)}
            )
            return ProcessingResult(
                ticket_id=ticket_id,
                category=TicketCategory.GENERAL_INQUIRY,
                intent=IntentAnalysis.default(),
                relevant_knowledge=(),
                draft_response=None,
                processing_time_ms=int((time.perf_counter() - start_time) * 1000),
                error=str(e) or e.__class__.__name__,
                failed_stage=PipelineStage.FETCH
            )

        if ticket.requester is None and ticket.requester_id is not None:
            try:
                ticket = replace(ticket, requester=await self._ticketing.get_user(ticket.requester_id))
            except Exception as e:
                logger.warning(
                    "Could not resolve requester",
                    extra={"ticket_id": ticket_id, "requester_id": ticket.requester_id, "error": str(e)}
                )

        return await self.process(ticket)
