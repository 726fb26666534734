"""
Triage Infrastructure Layer
============================

Infrastructure implementations for the ticket processing pipeline.

Contains:
- External: adapters from the LLM client, vector store and Zendesk client
  to the application layer interfaces
"""

from deskpilot.triage.infrastructure.external import (
    LLMCompletionProvider,
    MilvusKnowledgeIndex,
    ZendeskTicketingClient
)

__all__ = [
    "LLMCompletionProvider",
    "MilvusKnowledgeIndex",
    "ZendeskTicketingClient",
]
