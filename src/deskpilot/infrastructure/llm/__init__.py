"""
LLM Client Infrastructure
==========================

Wrapper for LLM providers (OpenAI, Z.AI) providing a clean interface for
chat completions and embeddings.

This module abstracts the LLM client implementation following the
Dependency Inversion Principle - the triage application layer depends on
abstractions, not concrete SDKs.
"""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from typing import List, Optional

from openai import AsyncOpenAI
from zai import ZaiClient

from deskpilot.config import settings, LLMProvider
from deskpilot.core import LLMException, ConfigurationException
from deskpilot.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

# Embedding input is truncated to stay within the model's context window
MAX_EMBEDDING_CHARS = 32000


class EmbeddingResult:
    """Result of an embedding generation."""

    def __init__(self, embedding: List[float], model: str):
        self.embedding = embedding
        self.model = model
        self.dimension = len(embedding)


class ChatCompletionResult:
    """Result of a chat completion."""

    def __init__(
        self,
        content: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ):
        self.content = content
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


class ILLMClient(ABC):
    """
    Interface for LLM client operations.

    Following Interface Segregation Principle - only methods
    actually needed by the application are defined.
    """

    model: str = "unknown"
    provider: str = "unknown"

    @abstractmethod
    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding for text."""

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.3,
        max_tokens: int = 1000,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Generate chat completion."""


def _log_usage(result: ChatCompletionResult, operation: str, provider: str) -> None:
    logger.debug(
        "LLM completion finished",
        extra={
            "provider": provider,
            "model": result.model,
            "operation": operation,
            "prompt_tokens": result.prompt_tokens,
            "completion_tokens": result.completion_tokens,
            "latency_ms": result.latency_ms,
        }
    )


class ZAIILLMClient(ILLMClient):
    """
    Z.AI SDK client implementation for GLM models.

    The Z.AI SDK is synchronous; calls run in a worker thread so the
    event loop keeps serving other tickets.
    """

    provider = LLMProvider.ZAI.value

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key or settings.zai_api_key
        if not self._api_key:
            raise ConfigurationException("Z.AI API key not configured")

        self._client = ZaiClient(api_key=self._api_key)
        self.model = settings.llm_model
        self._embedding_model = settings.embedding_model

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """
        Generate embedding for text using Z.AI embedding model.

        Raises:
            LLMException: If embedding generation fails
        """
        try:
            response = await asyncio.to_thread(
                self._client.embeddings.create,
                model=self._embedding_model,
                input=text[:MAX_EMBEDDING_CHARS]
            )
            return EmbeddingResult(
                embedding=response.data[0].embedding,
                model=self._embedding_model
            )
        except Exception as e:
            raise LLMException(f"Embedding generation failed: {str(e)}")

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.3,
        max_tokens: int = 1000,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate chat completion using GLM.

        Raises:
            LLMException: If completion fails
        """
        start_time = time.perf_counter()

        try:
            response = await asyncio.to_thread(
                self._client.chat.completions.create,
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )
        except Exception as e:
            raise LLMException(f"Chat completion failed: {str(e)}")

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        content = response.choices[0].message.content or ""

        usage = getattr(response, "usage", None)
        # Estimate when the SDK does not report usage
        prompt_tokens = getattr(usage, "prompt_tokens", None) or len(str(messages)) // 4
        completion_tokens = getattr(usage, "completion_tokens", None) or len(content) // 4

        result = ChatCompletionResult(
            content=content,
            model=self.model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            latency_ms=latency_ms
        )
        _log_usage(result, operation, self.provider)
        return result


class OpenAILLMClient(ILLMClient):
    """
    OpenAI client implementation for GPT models.

    Provides async wrapper around OpenAI SDK operations.
    """

    provider = LLMProvider.OPENAI.value

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key or settings.openai_api_key
        if not self._api_key:
            raise ConfigurationException("OpenAI API key not configured")

        self._client = AsyncOpenAI(
            api_key=self._api_key,
            timeout=settings.llm_timeout_seconds
        )
        self.model = settings.llm_model
        self._embedding_model = settings.embedding_model

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """
        Generate embedding for text using OpenAI embedding model.

        Raises:
            LLMException: If embedding generation fails
        """
        try:
            response = await self._client.embeddings.create(
                model=self._embedding_model,
                input=text[:MAX_EMBEDDING_CHARS]
            )
            return EmbeddingResult(
                embedding=response.data[0].embedding,
                model=self._embedding_model
            )
        except Exception as e:
            raise LLMException(f"Embedding generation failed: {str(e)}")

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.3,
        max_tokens: int = 1000,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate chat completion using OpenAI GPT.

        Raises:
            LLMException: If completion fails
        """
        start_time = time.perf_counter()

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens
            )
        except Exception as e:
            raise LLMException(f"Chat completion failed: {str(e)}")

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        result = ChatCompletionResult(
            content=response.choices[0].message.content or "",
            model=self.model,
            prompt_tokens=response.usage.prompt_tokens if response.usage else 0,
            completion_tokens=response.usage.completion_tokens if response.usage else 0,
            latency_ms=latency_ms
        )
        _log_usage(result, operation, self.provider)
        return result


class MockLLMClient(ILLMClient):
    """
    Mock LLM client for local runs and testing.

    Returns predictable responses without calling external APIs.
    """

    provider = LLMProvider.MOCK.value
    model = "mock-model"

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Return a deterministic, non-zero mock embedding."""
        dimension = settings.embedding_dimension
        seed = sum(ord(ch) for ch in text[:256]) or 1
        embedding = [((seed * (i + 1)) % 97) / 97.0 for i in range(dimension)]
        return EmbeddingResult(embedding=embedding, model="mock-embedding")

    async def chat_completion(
        self,
        messages: List[dict],
        temperature: float = 0.3,
        max_tokens: int = 1000,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Return mock response based on operation type."""
        if operation == "classification":
            content = "technical_support"
        elif operation == "intent_extraction":
            content = json.dumps({
                "intent": "get help",
                "urgency": "medium",
                "sentiment": "neutral",
                "keyEntities": []
            })
        elif operation == "draft_generation":
            content = "```json\n" + json.dumps({
                "draft": "Hi there,\n\nThank you for reaching out. This is a mock draft reply.",
                "confidence": 0.5,
                "suggestedTags": [],
                "requiresHumanReview": True,
                "reasoning": "Mock: no provider configured."
            }, indent=2) + "\n```"
        elif operation == "summary":
            content = "Mock summary of the conversation."
        else:
            content = "ok"

        return ChatCompletionResult(
            content=content,
            model=self.model,
            prompt_tokens=100,
            completion_tokens=len(content.split()),
            latency_ms=0
        )


def create_llm_client(provider: Optional[str] = None) -> ILLMClient:
    """
    Build the LLM client selected by configuration.

    Raises:
        ConfigurationException: If the provider is unknown or lacks credentials
    """
    provider = (provider or settings.llm_provider).lower()

    if settings.mock_llm or provider == LLMProvider.MOCK.value:
        return MockLLMClient()
    if provider == LLMProvider.OPENAI.value:
        return OpenAILLMClient()
    if provider == LLMProvider.ZAI.value:
        return ZAIILLMClient()

    raise ConfigurationException(f"Unsupported LLM provider: {provider}")
