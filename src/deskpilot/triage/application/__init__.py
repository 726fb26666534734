"""
Triage Application Layer
=========================

Application layer for the ticket processing pipeline.

Contains:
- Services: classifier, intent extractor, knowledge retriever, draft generator, summarizer
- Pipeline: the TicketProcessor orchestrator and its background dispatcher
- DTOs: Data transfer objects for API serialization
"""

from deskpilot.triage.application.services import (
    ICompletionProvider,
    IKnowledgeIndex,
    ITicketingClient,
    TicketClassifier,
    IntentExtractor,
    KnowledgeRetriever,
    IndexingReport,
    DraftGenerator,
    ThreadSummarizer
)
from deskpilot.triage.application.pipeline import (
    ProcessorConfig,
    BackgroundDispatcher,
    DeadLetter,
    TicketProcessor,
    generate_tags,
    sanitize_entity
)

__all__ = [
    # Collaborator Interfaces
    "ICompletionProvider",
    "IKnowledgeIndex",
    "ITicketingClient",
    # Services
    "TicketClassifier",
    "IntentExtractor",
    "KnowledgeRetriever",
    "IndexingReport",
    "DraftGenerator",
    "ThreadSummarizer",
    # Pipeline
    "ProcessorConfig",
    "BackgroundDispatcher",
    "DeadLetter",
    "TicketProcessor",
    "generate_tags",
    "sanitize_entity",
]
