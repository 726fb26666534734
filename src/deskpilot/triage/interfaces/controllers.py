"""
Triage Controllers (API Routes)
================================

FastAPI routes for the ticket processing pipeline.

Routers:
- webhook_router: Zendesk ticket webhooks
- api_router: standalone analysis endpoints (no ticket writes)
- admin_router: knowledge base administration and ticket reprocessing

Controllers delegate to application services.
"""

import asyncio
import time

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Path, Query, Request

from deskpilot.shared.api.webhooks import enforce_rate_limit, verify_webhook_signature
from deskpilot.shared.infrastructure.logging import get_logger
from deskpilot.triage.application import TicketProcessor
from deskpilot.triage.application.dto import (
    TicketWebhookPayload,
    WebhookAcceptedResponse,
    WebhookSyncResponse,
    CategorizeRequest,
    CategorizeResponse,
    DraftRequest,
    DraftReplyResponse,
    AnalyzeRequest,
    AnalyzeResponse,
    SummarizeRequest,
    SummarizeResponse,
    TicketSummaryResponse,
    KnowledgeSearchResponse,
    IndexDocumentsRequest,
    IndexDocumentsResponse,
    IndexErrorInfo,
    DeleteDocumentsRequest,
    DeleteDocumentsResponse,
    KnowledgeStatsResponse,
    BatchProcessRequest,
    BatchProcessResponse,
    ProcessingResultResponse,
    IntentInfo,
    KnowledgeInfo,
    DraftInfo
)
from deskpilot.triage.domain import Ticket
from deskpilot.triage.interfaces.dependencies import (
    TriageServices,
    get_triage_services,
    get_processor,
    get_ticketing
)
from deskpilot.triage.infrastructure import ZendeskTicketingClient

logger = get_logger(__name__)

webhook_router = APIRouter(
    prefix="/webhook",
    tags=["Webhooks"],
    dependencies=[Depends(enforce_rate_limit), Depends(verify_webhook_signature)]
)
api_router = APIRouter(prefix="/api", tags=["Analysis"])
admin_router = APIRouter(prefix="/admin", tags=["Admin"])


# ========== Example payloads for Swagger ==========

WEBHOOK_REQUEST_EXAMPLE = {
    "ticket": {
        "id": 12345,
        "subject": "Cannot login to my account",
        "description": "I keep getting an error when I try to log in. This is urgent.",
        "requester": {"name": "John Doe", "email": "john@example.com"},
        "tags": ["vip"]
    }
}

WEBHOOK_SYNC_RESPONSE_EXAMPLE = {
    "success": True,
    "ticket_id": 12345,
    "category": "account_management",
    "urgency": "high",
    "sentiment": "frustrated",
    "knowledge_articles": 1,
    "draft_generated": True,
    "draft_confidence": 0.85,
    "processing_time_ms": 2400,
    "error": None
}


async def _process_in_background(processor: TicketProcessor, ticket: Ticket) -> None:
    result = await processor.process(ticket)
    logger.info(
        "Webhook ticket processing complete",
        extra={
            "ticket_id": result.ticket_id,
            "category": result.category.value,
            "urgency": result.intent.urgency.value,
            "has_draft": result.draft_response is not None,
            "processing_time_ms": result.processing_time_ms,
            "error": result.error
        }
    )


# ========== Webhook Routes ==========

@webhook_router.post(
    "/ticket",
    response_model=WebhookAcceptedResponse,
    summary="Receive a ticket webhook",
    description="""
    Accept a Zendesk ticket webhook and process it in the background.

    Responds immediately so Zendesk does not time out. Tags, priority and
    (when confident enough) a draft note are written back to the ticket.
    """,
    responses={
        401: {"description": "Missing or invalid webhook signature"},
        429: {"description": "Rate limit exceeded"}
    }
)
async def receive_ticket_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    payload: TicketWebhookPayload = Body(..., examples=[WEBHOOK_REQUEST_EXAMPLE]),
    processor: TicketProcessor = Depends(get_processor)
):
    ticket = payload.ticket.to_domain()
    logger.info(
        "Webhook received",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", "unknown"),
            "ticket_id": ticket.id,
            "subject": ticket.subject[:100]
        }
    )

    background_tasks.add_task(_process_in_background, processor, ticket)
    return WebhookAcceptedResponse(ticket_id=ticket.id)


@webhook_router.post(
    "/ticket/sync",
    response_model=WebhookSyncResponse,
    summary="Process a ticket webhook synchronously",
    responses={
        200: {
            "description": "Ticket processed",
            "content": {"application/json": {"example": WEBHOOK_SYNC_RESPONSE_EXAMPLE}}
        },
        401: {"description": "Missing or invalid webhook signature"},
        429: {"description": "Rate limit exceeded"}
    }
)
async def process_ticket_webhook(
    payload: TicketWebhookPayload = Body(..., examples=[WEBHOOK_REQUEST_EXAMPLE]),
    processor: TicketProcessor = Depends(get_processor)
):
    result = await processor.process(payload.ticket.to_domain())
    return WebhookSyncResponse.from_domain(result)


# ========== Analysis Routes ==========

@api_router.post(
    "/categorize",
    response_model=CategorizeResponse,
    summary="Categorize a ticket and extract its intent"
)
async def categorize_ticket(
    payload: CategorizeRequest,
    services: TriageServices = Depends(get_triage_services)
):
    category = await services.classifier.classify(payload.subject, payload.description, payload.tags)
    intent = await services.intent_extractor.extract(payload.description or payload.subject)

    return CategorizeResponse(
        category=category,
        intent=intent.intent,
        urgency=intent.urgency,
        sentiment=intent.sentiment,
        key_entities=intent.key_entities
    )


@api_router.post(
    "/draft",
    response_model=DraftReplyResponse,
    summary="Generate a draft reply"
)
async def draft_reply(
    payload: DraftRequest,
    services: TriageServices = Depends(get_triage_services)
):
    context = await services.retriever.retrieve(payload.description)
    draft = await services.draft_generator.generate(
        subject=payload.subject,
        description=payload.description,
        customer_name=payload.customer_name,
        category=payload.category,
        context=context
    )

    return DraftReplyResponse(
        **DraftInfo.from_domain(draft).model_dump(),
        sources_used=len(context)
    )


@api_router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    summary="Run the full analysis without updating the ticket",
    description="""
    Categorizes, extracts intent and retrieves knowledge concurrently, then
    drafts a reply. Nothing is written to Zendesk.
    """
)
async def analyze_ticket(
    payload: AnalyzeRequest,
    services: TriageServices = Depends(get_triage_services)
):
    start_time = time.perf_counter()

    category, intent, knowledge = await asyncio.gather(
        services.classifier.classify(payload.subject, payload.description),
        services.intent_extractor.extract(payload.description),
        services.retriever.retrieve(f"{payload.subject}\n{payload.description}")
    )
    draft = await services.draft_generator.generate(
        subject=payload.subject or "Support Request",
        description=payload.description,
        customer_name=payload.customer_name,
        category=category,
        sentiment=intent.sentiment,
        context=knowledge
    )

    return AnalyzeResponse(
        category=category,
        intent=IntentInfo(
            intent=intent.intent,
            urgency=intent.urgency,
            sentiment=intent.sentiment,
            key_entities=intent.key_entities
        ),
        relevant_knowledge=[KnowledgeInfo.from_domain(item) for item in knowledge],
        draft_response=DraftInfo.from_domain(draft),
        processing_time_ms=int((time.perf_counter() - start_time) * 1000)
    )


@api_router.post(
    "/summarize",
    response_model=SummarizeResponse,
    summary="Summarize a conversation thread"
)
async def summarize_thread(
    payload: SummarizeRequest,
    services: TriageServices = Depends(get_triage_services)
):
    summary = await services.summarizer.summarize(payload.messages)
    return SummarizeResponse(summary=summary, message_count=len(payload.messages))


@api_router.get(
    "/kb/search",
    response_model=KnowledgeSearchResponse,
    summary="Search the knowledge base"
)
async def search_knowledge(
    q: str = Query(..., min_length=1, description="Search query"),
    limit: int = Query(5, ge=1, le=50, description="Maximum results"),
    services: TriageServices = Depends(get_triage_services)
):
    results = await services.retriever.retrieve(q, top_k=limit, min_score=0.5)
    return KnowledgeSearchResponse(
        query=q,
        results=[KnowledgeInfo.from_domain(item) for item in results]
    )


# ========== Admin Routes ==========

@admin_router.post(
    "/kb/index",
    response_model=IndexDocumentsResponse,
    summary="Index knowledge base documents"
)
async def index_documents(
    payload: IndexDocumentsRequest,
    services: TriageServices = Depends(get_triage_services)
):
    report = await services.retriever.index_documents(
        [document.to_domain() for document in payload.documents]
    )
    return IndexDocumentsResponse(
        success=not report.errors,
        indexed=report.indexed,
        errors=[IndexErrorInfo(**error) for error in report.errors]
    )


@admin_router.get(
    "/kb/stats",
    response_model=KnowledgeStatsResponse,
    summary="Knowledge base statistics"
)
async def knowledge_stats(services: TriageServices = Depends(get_triage_services)):
    stats = await services.retriever.get_stats()
    return KnowledgeStatsResponse(**stats)


@admin_router.delete(
    "/kb/documents",
    response_model=DeleteDocumentsResponse,
    summary="Delete knowledge base documents"
)
async def delete_documents(
    payload: DeleteDocumentsRequest,
    services: TriageServices = Depends(get_triage_services)
):
    deleted = await services.retriever.delete_documents(payload.ids)
    return DeleteDocumentsResponse(deleted=deleted)


@admin_router.post(
    "/ticket/{ticket_id}/reprocess",
    response_model=ProcessingResultResponse,
    summary="Fetch a ticket from Zendesk and process it again"
)
async def reprocess_ticket(
    ticket_id: int = Path(..., ge=1),
    processor: TicketProcessor = Depends(get_processor)
):
    result = await processor.reprocess(ticket_id)
    return ProcessingResultResponse.from_domain(result)


@admin_router.get(
    "/ticket/{ticket_id}/summary",
    response_model=TicketSummaryResponse,
    summary="Summarize a ticket's comment thread"
)
async def summarize_ticket(
    ticket_id: int = Path(..., ge=1),
    ticketing: ZendeskTicketingClient = Depends(get_ticketing),
    services: TriageServices = Depends(get_triage_services)
):
    comments = await ticketing.get_ticket_comments(ticket_id)
    summary = await services.summarizer.summarize(comments)
    return TicketSummaryResponse(ticket_id=ticket_id, summary=summary, message_count=len(comments))


@admin_router.post(
    "/tickets/batch",
    response_model=BatchProcessResponse,
    summary="Process several tickets in concurrent chunks"
)
async def process_batch(
    payload: BatchProcessRequest,
    processor: TicketProcessor = Depends(get_processor)
):
    results = await processor.process_batch(
        [ticket.to_domain() for ticket in payload.tickets],
        payload.concurrency
    )
    return BatchProcessResponse(
        processed=len(results),
        failed=sum(1 for result in results if result.error),
        results=[ProcessingResultResponse.from_domain(result) for result in results]
    )
