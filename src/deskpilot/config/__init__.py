"""
Configuration Module
====================

Application settings and configuration management using Pydantic.
"""

from enum import Enum
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="deskpilot", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== LLM Provider ==========
    llm_provider: str = Field(
        default="openai",
        description="Completion provider: openai, zai or mock"
    )
    mock_llm: bool = Field(
        default=False,
        description="Use mock LLM responses for testing (no API calls)"
    )
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    zai_api_key: Optional[str] = Field(default=None, description="Z.AI API key for GLM models")
    llm_model: str = Field(
        default="gpt-4o-mini",
        description="Model used for classification, extraction and drafting"
    )
    embedding_model: str = Field(
        default="text-embedding-3-small",
        description="Embedding model for the knowledge index"
    )
    embedding_dimension: int = Field(
        default=1536,
        description="Embedding vector dimension",
        ge=128
    )
    llm_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for completion provider calls",
        ge=1.0
    )

    # ========== Zilliz Cloud (Managed Milvus) ==========
    zilliz_uri: str = Field(
        default="",
        description="Zilliz Cloud cluster public endpoint"
    )
    zilliz_api_key: str = Field(default="", description="Zilliz Cloud API key")
    milvus_collection_name: str = Field(
        default="support_knowledge",
        description="Milvus collection holding knowledge base articles"
    )

    # ========== Zendesk ==========
    zendesk_subdomain: str = Field(default="", description="Zendesk subdomain (<subdomain>.zendesk.com)")
    zendesk_email: str = Field(default="", description="Zendesk agent email for API token auth")
    zendesk_api_token: str = Field(default="", description="Zendesk API token")
    zendesk_webhook_secret: Optional[str] = Field(
        default=None,
        description="Signing secret for Zendesk webhooks (validation disabled when unset)"
    )
    zendesk_category_field_id: Optional[int] = Field(
        default=None,
        description="Custom field ID that receives the AI category"
    )
    zendesk_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for Zendesk API calls",
        ge=0.1,
        le=60
    )

    # ========== Pipeline ==========
    add_draft_to_ticket: bool = Field(
        default=True,
        description="Commit confident drafts as internal notes"
    )
    add_tags_to_ticket: bool = Field(
        default=True,
        description="Commit AI tags to processed tickets"
    )
    min_confidence_for_draft: float = Field(
        default=0.6,
        description="Minimum draft confidence required to commit the draft note",
        ge=0.0,
        le=1.0
    )
    batch_concurrency: int = Field(
        default=5,
        description="Tickets processed concurrently per batch chunk",
        ge=1,
        le=50
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    # ========== Rate Limiting ==========
    rate_limit_per_minute: int = Field(
        default=100,
        description="Max webhook requests per window per client",
        ge=1
    )
    rate_limit_window_seconds: int = Field(
        default=60,
        description="Length of a rate limit window",
        ge=1
    )
    webhook_max_age_seconds: int = Field(
        default=300,
        description="Maximum accepted age of a signed webhook timestamp",
        ge=1
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production", "test"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("llm_provider")
    @classmethod
    def validate_llm_provider(cls, v: str) -> str:
        """Ensure the completion provider is supported."""
        v = v.lower()
        allowed = {"openai", "zai", "mock"}
        if v not in allowed:
            raise ValueError(f"llm_provider must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class LLMProvider(str, Enum):
    """Supported completion providers."""
    OPENAI = "openai"
    ZAI = "zai"
    MOCK = "mock"


class TicketCategory(str, Enum):
    """Ticket topic categories."""
    BILLING = "billing"
    TECHNICAL_SUPPORT = "technical_support"
    ACCOUNT_MANAGEMENT = "account_management"
    FEATURE_REQUEST = "feature_request"
    BUG_REPORT = "bug_report"
    GENERAL_INQUIRY = "general_inquiry"
    CANCELLATION = "cancellation"
    REFUND = "refund"
    ONBOARDING = "onboarding"
    INTEGRATION = "integration"
    SECURITY = "security"


class UrgencyLevel(str, Enum):
    """Ticket urgency levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Sentiment(str, Enum):
    """Customer emotional tone."""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    FRUSTRATED = "frustrated"


class TicketPriority(str, Enum):
    """Zendesk ticket priorities."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


# Urgency levels that escalate the Zendesk priority
URGENCY_PRIORITY_ESCALATION = {
    UrgencyLevel.CRITICAL: TicketPriority.URGENT,
    UrgencyLevel.HIGH: TicketPriority.HIGH,
}
