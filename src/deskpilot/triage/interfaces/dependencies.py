"""
Triage Dependencies
===================

Service container stored on ``app.state.triage`` and the FastAPI
dependencies that read it.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request

from deskpilot.core import ConfigurationException
from deskpilot.triage.application import (
    TicketClassifier,
    IntentExtractor,
    KnowledgeRetriever,
    DraftGenerator,
    ThreadSummarizer,
    TicketProcessor
)
from deskpilot.triage.infrastructure import LLMCompletionProvider, ZendeskTicketingClient


@dataclass
class TriageServices:
    """Everything the triage routes need, built once at startup."""
    completion_provider: LLMCompletionProvider
    classifier: TicketClassifier
    intent_extractor: IntentExtractor
    retriever: KnowledgeRetriever
    draft_generator: DraftGenerator
    summarizer: ThreadSummarizer
    ticketing: Optional[ZendeskTicketingClient] = None
    processor: Optional[TicketProcessor] = None


def get_triage_services(request: Request) -> TriageServices:
    """Get triage services from app state."""
    services = getattr(request.app.state, "triage", None)
    if services is None:
        raise ConfigurationException("Triage services not initialized")
    return services


def get_processor(services: TriageServices = Depends(get_triage_services)) -> TicketProcessor:
    """Get the ticket processor; requires Zendesk to be configured."""
    if services.processor is None:
        raise ConfigurationException("Ticket processor not available - Zendesk not configured")
    return services.processor


def get_ticketing(services: TriageServices = Depends(get_triage_services)) -> ZendeskTicketingClient:
    if services.ticketing is None:
        raise ConfigurationException("Zendesk not configured")
    return services.ticketing
