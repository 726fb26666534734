"""
DeskPilot - Main Application
============================

AI automation for Zendesk support tickets.

Every incoming ticket is categorized, analyzed for intent, urgency and
sentiment, matched against the knowledge base and answered with a draft
reply. Tags, priority and confident drafts are written back to Zendesk.

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services, pipeline and DTOs
- Domain: Entities, parsing and prompt builders
- Infrastructure: LLM, vector store, Zendesk
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Awaitable, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from deskpilot.config import settings
from deskpilot.core import ApplicationException, ConfigurationException
from deskpilot.infrastructure.llm import create_llm_client
from deskpilot.infrastructure.ticketing import ZendeskClient
from deskpilot.infrastructure.vectorstore import MilvusVectorStore
from deskpilot.shared.api.middleware import (
    CorrelationIDMiddleware,
    LoggingMiddleware,
    application_exception_handler,
    validation_exception_handler,
    global_exception_handler
)
from deskpilot.shared.infrastructure.logging import setup_logging, get_logger
from deskpilot.shared.infrastructure.rate_limit import ExpiringCounter
from deskpilot.shared.infrastructure.scheduler import MaintenanceScheduler
from deskpilot.triage.application import (
    TicketClassifier,
    IntentExtractor,
    KnowledgeRetriever,
    DraftGenerator,
    ThreadSummarizer,
    TicketProcessor,
    ProcessorConfig
)
from deskpilot.triage.infrastructure import (
    LLMCompletionProvider,
    MilvusKnowledgeIndex,
    ZendeskTicketingClient
)
from deskpilot.triage.interfaces import TriageServices, webhook_router, api_router, admin_router

logger = get_logger(__name__)


async def build_triage_services() -> TriageServices:
    """
    Wire the pipeline from configuration.

    Zendesk is optional: without credentials the analysis endpoints still
    work but ticket processing is disabled.

    Raises:
        ConfigurationException: If the LLM provider cannot be created
    """
    llm_client = create_llm_client()
    provider = LLMCompletionProvider(llm_client)

    vector_store = MilvusVectorStore()
    try:
        await vector_store.initialize()
    except ApplicationException as e:
        logger.warning(f"Vector store not available: {e}")

    retriever = KnowledgeRetriever(MilvusKnowledgeIndex(llm_client, vector_store))
    services = TriageServices(
        completion_provider=provider,
        classifier=TicketClassifier(provider),
        intent_extractor=IntentExtractor(provider),
        retriever=retriever,
        draft_generator=DraftGenerator(provider),
        summarizer=ThreadSummarizer(provider)
    )

    try:
        services.ticketing = ZendeskTicketingClient(ZendeskClient())
    except ConfigurationException as e:
        logger.warning(f"Ticket processing disabled: {e}")
        return services

    services.processor = TicketProcessor(
        classifier=services.classifier,
        intent_extractor=services.intent_extractor,
        retriever=services.retriever,
        draft_generator=services.draft_generator,
        ticketing=services.ticketing,
        config=ProcessorConfig.from_settings()
    )
    return services


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Create the webhook rate limiter and schedule its sweep
    3. Build the triage services

    SHUTDOWN:
    1. Stop the maintenance scheduler
    2. Wait for outstanding ticket writes
    3. Close the Zendesk client
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting DeskPilot", extra={
        "version": settings.app_version,
        "environment": settings.environment,
        "llm_provider": settings.llm_provider
    })

    rate_limiter = ExpiringCounter(
        limit=settings.rate_limit_per_minute,
        window_seconds=settings.rate_limit_window_seconds
    )
    app.state.rate_limiter = rate_limiter

    scheduler = MaintenanceScheduler()
    scheduler.add_interval_job(
        rate_limiter.sweep,
        seconds=settings.rate_limit_window_seconds,
        job_id="rate_limit_sweep",
        name="Sweep expired rate limit windows"
    )
    await scheduler.start()

    try:
        app.state.triage = await build_triage_services()
    except ConfigurationException as e:
        logger.warning(f"Triage services not available: {e}")
        app.state.triage = None

    logger.info("DeskPilot started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down DeskPilot")

    await scheduler.stop()

    services: Optional[TriageServices] = app.state.triage
    if services and services.processor:
        await services.processor.dispatcher.drain()
    if services and services.ticketing:
        await services.ticketing.close()

    logger.info("DeskPilot shutdown complete")


async def _check(name: str, probe: Awaitable[Dict[str, Any]]) -> Dict[str, Any]:
    try:
        return await probe
    except Exception as e:
        logger.warning("Health check failed", extra={"service": name, "error": str(e)})
        return {"success": False, "message": str(e)}


async def health_check():
    """Liveness check for load balancers."""
    return {
        "status": "ok",
        "version": settings.app_version,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


async def detailed_health_check(request: Request):
    """
    Readiness check of every external collaborator.

    Returns 503 when any of them is unreachable.
    """
    services: Optional[TriageServices] = getattr(request.app.state, "triage", None)
    if services is None:
        return JSONResponse(
            status_code=503,
            content={
                "status": "degraded",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "services": {},
                "message": "Triage services not initialized"
            }
        )

    if services.ticketing:
        zendesk_probe = _check("zendesk", services.ticketing.verify_connection())
    else:
        zendesk_probe = _check("zendesk", _not_configured())

    zendesk_status, llm_status, rag_status = await asyncio.gather(
        zendesk_probe,
        _check("llm", services.completion_provider.verify_connection()),
        _check("rag", services.retriever.verify_connection())
    )

    healthy = all(status.get("success") for status in (zendesk_status, llm_status, rag_status))
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "healthy" if healthy else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "services": {"zendesk": zendesk_status, "llm": llm_status, "rag": rag_status}
        }
    )


async def _not_configured() -> Dict[str, Any]:
    return {"success": False, "message": "Zendesk not configured"}


async def root():
    """Root endpoint with API information."""
    return {
        "service": "DeskPilot",
        "version": settings.app_version,
        "docs": "/docs",
        "health": "/health",
        "routers": {
            "webhook": "/webhook",
            "api": "/api",
            "admin": "/admin"
        }
    }


def create_app(with_lifespan: bool = True) -> FastAPI:
    """Build the FastAPI application."""
    app = FastAPI(
        title="DeskPilot API",
        description="""
    ## AI Automation for Zendesk Support

    - **Webhooks**: process new tickets (categorize, analyze, retrieve knowledge, draft)
    - **Analysis API**: the same steps without writing to Zendesk
    - **Admin**: knowledge base indexing, ticket reprocessing and batch runs
    """,
        version=settings.app_version,
        debug=settings.debug,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan if with_lifespan else None
    )

    # === CORS Middleware ===
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === Custom Middleware (from shared) ===
    # Added last runs first: correlation ID is set before request logging
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(CorrelationIDMiddleware)

    app.add_exception_handler(ApplicationException, application_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    # === Routes ===
    app.add_api_route("/", root, methods=["GET"], tags=["Root"])
    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/detailed", detailed_health_check, methods=["GET"], tags=["Health"])

    app.include_router(webhook_router)
    app.include_router(api_router)
    app.include_router(admin_router)

    return app


app = create_app()


# === Development Entry Point ===

def run() -> None:
    import uvicorn

    uvicorn.run(
        "deskpilot.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run()
