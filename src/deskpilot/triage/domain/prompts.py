"""
Prompt Builders
===============

Builds the prompts sent to the completion provider.

Following DRY principle - all prompt text lives here.
"""

from typing import List, Optional, Sequence

from deskpilot.config import TicketCategory, Sentiment
from deskpilot.triage.domain.entities import KnowledgeResult

# Knowledge snippets included in a draft prompt
MAX_DRAFT_CONTEXT = 5


class CategorizationPromptBuilder:
    """Prompt asking for a single category label."""

    CATEGORY_DESCRIPTIONS = {
        TicketCategory.BILLING: "Payments, invoices, charges, pricing, subscriptions",
        TicketCategory.TECHNICAL_SUPPORT: "Errors, troubleshooting, how-to questions",
        TicketCategory.ACCOUNT_MANAGEMENT: "Login problems, profile changes, permissions",
        TicketCategory.FEATURE_REQUEST: "Suggestions for new features or enhancements",
        TicketCategory.BUG_REPORT: "Software defects and unexpected behaviour",
        TicketCategory.GENERAL_INQUIRY: "General questions and information requests",
        TicketCategory.CANCELLATION: "Closing an account or ending a subscription",
        TicketCategory.REFUND: "Requests for money back",
        TicketCategory.ONBOARDING: "Getting started, setup, first-time configuration",
        TicketCategory.INTEGRATION: "API usage, webhooks, third-party connections",
        TicketCategory.SECURITY: "Security concerns, data privacy, suspicious access",
    }

    @classmethod
    def build_prompt(
        cls,
        subject: str,
        description: str,
        tags: Optional[Sequence[str]] = None
    ) -> str:
        """Build classification prompt from ticket content."""
        categories = "\n".join(
            f"- {category.value}: {cls.CATEGORY_DESCRIPTIONS[category]}"
            for category in TicketCategory
        )
        existing_tags = f"Existing tags: {', '.join(tags)}\n" if tags else ""

        return f"""You classify customer support tickets.

TICKET
Subject: {subject}
Description: {description}
{existing_tags}
CATEGORIES
{categories}

Pick the single most specific category for the customer's main concern.
Reply with the category name only, for example "billing"."""


class IntentPromptBuilder:
    """Prompt asking for intent, urgency, sentiment and key entities as JSON."""

    @classmethod
    def build_prompt(cls, text: str) -> str:
        return f"""Analyze this customer support message.

MESSAGE
{text}

Return:
1. intent: what the customer wants, in 2-5 words
2. urgency: low (no deadline), medium (needs attention), high (blocks the
   customer's work) or critical (outage, data loss, security incident)
3. sentiment: positive, neutral, negative or frustrated
4. keyEntities: key terms such as product names, features or error codes

Respond with JSON only:
{{"intent": "...", "urgency": "...", "sentiment": "...", "keyEntities": []}}"""


class DraftPromptBuilder:
    """Prompt asking for a draft reply grounded in knowledge base snippets."""

    @staticmethod
    def format_context(context: Sequence[KnowledgeResult]) -> str:
        """Render at most MAX_DRAFT_CONTEXT snippets with their relevance."""
        if not context:
            return "KNOWLEDGE BASE\nNo relevant articles found. Rely on general knowledge."

        articles = []
        for index, item in enumerate(list(context)[:MAX_DRAFT_CONTEXT], 1):
            parts = [f"Article {index} (relevance: {round(item.score * 100)}%)"]
            if item.title:
                parts.append(item.title)
            parts.append(item.text)
            if item.url:
                parts.append(f"Source: {item.url}")
            articles.append("\n".join(parts))

        return "KNOWLEDGE BASE\nUse these articles where they help:\n\n" + "\n\n".join(articles)

    @classmethod
    def build_prompt(
        cls,
        subject: str,
        description: str,
        customer_name: str,
        category: Optional[TicketCategory],
        sentiment: Optional[Sentiment],
        context: Sequence[KnowledgeResult]
    ) -> str:
        category_label = category.value if category else "unknown"
        sentiment_label = sentiment.value if sentiment else "unknown"

        return f"""You are an experienced customer support agent. Draft a reply to this ticket.

CUSTOMER
Name: {customer_name}
Sentiment: {sentiment_label}
Category: {category_label}

TICKET
Subject: {subject}
Message: {description}

{cls.format_context(context)}

Address the customer by name, acknowledge the problem, give concrete next
steps and offer further help. Keep the tone professional and warm.

Respond with JSON only:
{{
  "draft": "full reply to the customer",
  "confidence": 0.0,
  "suggestedTags": [],
  "requiresHumanReview": true,
  "reasoning": "short explanation"
}}"""


class SummaryPromptBuilder:
    """Prompt asking for a short summary of a conversation thread."""

    @classmethod
    def build_prompt(cls, messages: List[str]) -> str:
        conversation = "\n\n".join(
            f"[Message {index}]: {message}" for index, message in enumerate(messages, 1)
        )
        return f"""Summarize this customer support conversation.

CONVERSATION
{conversation}

In 2-4 sentences cover the main issue, the key points discussed and the
current status.

Summary:"""
