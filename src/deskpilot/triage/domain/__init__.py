"""
Triage Domain Layer
===================

Domain layer for the ticket processing pipeline.

Contains:
- Entities: Ticket, IntentAnalysis, KnowledgeResult, DraftResponse, ProcessingResult
- Parsing: tolerant decoding of completion provider output
- Prompts: prompt builders for each completion call

This layer is framework-agnostic and contains pure business logic.
"""

from deskpilot.triage.domain.entities import (
    DEFAULT_CUSTOMER_NAME,
    Requester,
    Ticket,
    IntentAnalysis,
    KnowledgeResult,
    KnowledgeDocument,
    DraftResponse,
    PipelineStage,
    ProcessingResult
)
from deskpilot.triage.domain.parsing import (
    ParsedOk,
    ParsedDefault,
    ParseOutcome,
    parse_json_object,
    normalize_category
)
from deskpilot.triage.domain.prompts import (
    MAX_DRAFT_CONTEXT,
    CategorizationPromptBuilder,
    IntentPromptBuilder,
    DraftPromptBuilder,
    SummaryPromptBuilder
)

__all__ = [
    "DEFAULT_CUSTOMER_NAME",
    "Requester",
    "Ticket",
    "IntentAnalysis",
    "KnowledgeResult",
    "KnowledgeDocument",
    "DraftResponse",
    "PipelineStage",
    "ProcessingResult",
    "ParsedOk",
    "ParsedDefault",
    "ParseOutcome",
    "parse_json_object",
    "normalize_category",
    "MAX_DRAFT_CONTEXT",
    "CategorizationPromptBuilder",
    "IntentPromptBuilder",
    "DraftPromptBuilder",
    "SummaryPromptBuilder",
]
