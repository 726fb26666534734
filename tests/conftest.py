"""Pytest configuration and fixtures."""

import json
from unittest.mock import AsyncMock

import pytest

from deskpilot.triage.application import (
    TicketClassifier,
    IntentExtractor,
    KnowledgeRetriever,
    DraftGenerator,
    ThreadSummarizer,
    TicketProcessor,
    ProcessorConfig
)
from deskpilot.triage.application.services import (
    ICompletionProvider,
    IKnowledgeIndex,
    ITicketingClient
)
from deskpilot.triage.domain import Requester, Ticket, KnowledgeResult


# Mock LLM responses
@pytest.fixture
def intent_response() -> str:
    return json.dumps({
        "intent": "reset password",
        "urgency": "high",
        "sentiment": "frustrated",
        "keyEntities": ["login", "error"]
    })


@pytest.fixture
def draft_response() -> str:
    return "```json\n" + json.dumps({
        "draft": "Hi Jane Doe,\n\nSorry about the login trouble. Please reset your password from the sign-in page.",
        "confidence": 0.85,
        "suggestedTags": ["password_reset"],
        "requiresHumanReview": False,
        "reasoning": "Matches the password reset article."
    }) + "\n```"


@pytest.fixture
def completion_provider(intent_response, draft_response) -> AsyncMock:
    """Completion provider answering every call with well-formed output."""
    provider = AsyncMock(spec=ICompletionProvider)
    provider.classify.return_value = "account_management"
    provider.extract_structured.return_value = intent_response
    provider.generate.return_value = draft_response
    provider.summarize.return_value = "  Customer cannot log in after a password change.  "
    return provider


@pytest.fixture
def knowledge_results():
    return [
        KnowledgeResult(id="kb-1", text="Resetting your password from the sign-in page.", score=0.9,
                        title="Password reset", url="https://help.example.com/reset"),
        KnowledgeResult(id="kb-2", text="Login errors after SSO changes.", score=0.8),
    ]


@pytest.fixture
def knowledge_index(knowledge_results) -> AsyncMock:
    index = AsyncMock(spec=IKnowledgeIndex)
    index.embed.return_value = [0.1, 0.2, 0.3]
    index.query.return_value = knowledge_results
    index.upsert.side_effect = lambda entries: len(entries)
    index.delete.side_effect = lambda ids: len(ids)
    index.stats.return_value = {"total_vectors": 42, "dimension": 1536, "collections": {"support_knowledge": 42}}
    return index


@pytest.fixture
def ticketing() -> AsyncMock:
    client = AsyncMock(spec=ITicketingClient)
    client.add_tags.side_effect = lambda ticket_id, tags: list(tags)
    client.get_ticket_comments.return_value = ["I cannot log in.", "Have you tried resetting?"]
    return client


@pytest.fixture
def processor_config() -> ProcessorConfig:
    return ProcessorConfig(
        add_draft_to_ticket=True,
        add_tags_to_ticket=True,
        min_confidence_for_draft=0.6,
        category_field_id=None,
        batch_concurrency=5
    )


@pytest.fixture
def make_processor(completion_provider, knowledge_index, ticketing, processor_config):
    """Factory for processors wired to the mock collaborators."""

    def create(**overrides) -> TicketProcessor:
        provider = overrides.pop("provider", completion_provider)
        config = overrides.pop("config", processor_config)
        return TicketProcessor(
            classifier=TicketClassifier(provider),
            intent_extractor=IntentExtractor(provider),
            retriever=KnowledgeRetriever(overrides.pop("index", knowledge_index)),
            draft_generator=DraftGenerator(provider),
            ticketing=overrides.pop("ticketing", ticketing),
            config=config
        )

    return create


# Sample ticket factory
@pytest.fixture
def ticket_factory():
    """Factory for creating test tickets."""

    def create_ticket(**kwargs) -> Ticket:
        defaults = {
            "id": 1001,
            "subject": "Cannot login",
            "description": "I get an error every time I try to log in since yesterday.",
            "requester": Requester(name="Jane Doe", email="jane@example.com"),
            "tags": ("vip",),
        }
        return Ticket(**{**defaults, **kwargs})

    return create_ticket


@pytest.fixture
def summarizer(completion_provider) -> ThreadSummarizer:
    return ThreadSummarizer(completion_provider)
