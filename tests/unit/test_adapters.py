"""Unit tests for the LLM and vector store adapters."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from deskpilot.core import ConfigurationException, VectorStoreException
from deskpilot.infrastructure.llm import MockLLMClient, create_llm_client
from deskpilot.infrastructure.vectorstore import (
    Document,
    IVectorStore,
    IndexStats,
    MilvusVectorStore,
    SearchResult,
    build_filter_expression
)
from deskpilot.triage.application import DraftGenerator, IntentExtractor, TicketClassifier
from deskpilot.triage.domain import KnowledgeDocument
from deskpilot.triage.infrastructure import LLMCompletionProvider, MilvusKnowledgeIndex


class TestLLMCompletionProvider:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_mock_client_round_trip_through_services(self):
        provider = LLMCompletionProvider(MockLLMClient())

        category = await TicketClassifier(provider).classify("Crash", "The app crashes")
        intent = await IntentExtractor(provider).extract("The app crashes")
        draft = await DraftGenerator(provider).generate("Crash", "The app crashes", "Jane")

        assert category.value == "technical_support"
        assert intent.intent == "get help"
        assert draft.confidence == 0.5
        assert draft.requires_human_review is True

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_operation_budgets(self):
        client = MockLLMClient()
        client.chat_completion = AsyncMock(return_value=MagicMock(content="billing"))
        provider = LLMCompletionProvider(client)

        await provider.classify("prompt")
        await provider.generate("prompt")

        first, second = client.chat_completion.await_args_list
        assert first.kwargs["operation"] == "classification"
        assert first.kwargs["max_tokens"] == 50
        assert second.kwargs["operation"] == "draft_generation"
        assert second.kwargs["temperature"] == 0.5

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_verify_connection(self):
        status = await LLMCompletionProvider(MockLLMClient()).verify_connection()

        assert status == {"success": True, "provider": "mock", "model": "mock-model"}

    @pytest.mark.unit
    def test_factory(self):
        assert isinstance(create_llm_client("mock"), MockLLMClient)
        with pytest.raises(ConfigurationException):
            create_llm_client("unknown")


class TestMilvusKnowledgeIndex:

    @pytest.fixture
    def vector_store(self):
        store = AsyncMock(spec=IVectorStore)
        store.search.return_value = [
            SearchResult(content="Reset steps", metadata={"title": "Password reset", "url": ""}, score=0.91, id="kb-1"),
        ]
        store.upsert.side_effect = lambda documents: len(documents)
        store.get_stats.return_value = IndexStats(total_vectors=3, dimension=1536, collections={"kb": 3})
        return store

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_query_maps_hits(self, vector_store):
        index = MilvusKnowledgeIndex(MockLLMClient(), vector_store)

        embedding = await index.embed("password")
        results = await index.query(embedding, top_k=4)

        assert len(embedding) > 0
        assert results[0].id == "kb-1"
        assert results[0].title == "Password reset"
        assert results[0].url is None
        assert vector_store.search.await_args.kwargs["top_k"] == 4

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_upsert_stores_metadata(self, vector_store):
        index = MilvusKnowledgeIndex(MockLLMClient(), vector_store)
        document = KnowledgeDocument(id="kb-9", title="Refunds", content="Five days", url="https://kb/9")

        assert await index.upsert([(document, [0.1, 0.2])]) == 1

        stored = vector_store.upsert.await_args.args[0][0]
        assert stored.text == "Five days"
        assert stored.metadata["title"] == "Refunds"
        assert stored.metadata["url"] == "https://kb/9"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stats(self, vector_store):
        stats = await MilvusKnowledgeIndex(MockLLMClient(), vector_store).stats()

        assert stats == {"total_vectors": 3, "dimension": 1536, "collections": {"kb": 3}}


class TestMilvusVectorStore:

    @pytest.mark.unit
    def test_filter_expression(self):
        assert build_filter_expression(None) == ""
        assert build_filter_expression({"category": "billing"}) == 'category == "billing"'
        assert build_filter_expression({"category": ["billing", "refund"], "lang": "en"}) == (
            'category in ["billing", "refund"] and lang == "en"'
        )

    @pytest.mark.unit
    def test_filter_rejects_injection(self):
        with pytest.raises(VectorStoreException):
            build_filter_expression({"category or 1": "x"})

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_requires_uri(self):
        with pytest.raises(VectorStoreException):
            await MilvusVectorStore(uri="").initialize()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_search_formats_hits(self):
        milvus = MagicMock()
        milvus.has_collection.return_value = True
        milvus.search.return_value = [[
            {"id": "kb-1", "distance": 0.88, "entity": {"text": "Reset steps", "title": "Password reset", "url": ""}},
        ]]

        with patch("deskpilot.infrastructure.vectorstore.MilvusClient", return_value=milvus):
            store = MilvusVectorStore(collection_name="kb", uri="https://zilliz.example", api_key="key", dimension=8)
            results = await store.search([0.1] * 8, top_k=3, filter={"category": "billing"})

        assert results[0].id == "kb-1"
        assert results[0].score == pytest.approx(0.88)
        assert results[0].metadata["title"] == "Password reset"
        assert milvus.search.call_args.kwargs["filter"] == 'category == "billing"'
        milvus.create_collection.assert_not_called()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_initialize_creates_collection(self):
        milvus = MagicMock()
        milvus.has_collection.return_value = False

        with patch("deskpilot.infrastructure.vectorstore.MilvusClient", return_value=milvus):
            await MilvusVectorStore(collection_name="kb", uri="https://zilliz.example", dimension=8).initialize()

        kwargs = milvus.create_collection.call_args.kwargs
        assert kwargs["collection_name"] == "kb"
        assert kwargs["dimension"] == 8
        assert kwargs["metric_type"] == "COSINE"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_upsert_failure(self):
        milvus = MagicMock()
        milvus.has_collection.return_value = True
        milvus.upsert.side_effect = RuntimeError("quota exceeded")

        with patch("deskpilot.infrastructure.vectorstore.MilvusClient", return_value=milvus):
            store = MilvusVectorStore(collection_name="kb", uri="https://zilliz.example", dimension=8)
            with pytest.raises(VectorStoreException):
                await store.upsert([Document(id="kb-1", text="t", embedding=[0.1] * 8, metadata={})])
