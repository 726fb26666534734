"""Unit tests for knowledge retrieval, hybrid re-ranking and indexing."""

import pytest

from deskpilot.core import VectorStoreException
from deskpilot.triage.application import KnowledgeRetriever
from deskpilot.triage.domain import KnowledgeResult, KnowledgeDocument


def _result(id: str, score: float, text: str, title=None) -> KnowledgeResult:
    return KnowledgeResult(id=id, text=text, score=score, title=title)


class TestRetrieve:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_filters_by_min_score_and_empty_text(self, knowledge_index):
        knowledge_index.query.return_value = [
            _result("kb-1", 0.92, "Reset your password"),
            _result("kb-2", 0.75, ""),
            _result("kb-3", 0.55, "Unrelated article"),
        ]

        results = await KnowledgeRetriever(knowledge_index).retrieve("password", top_k=3, min_score=0.7)

        assert [result.id for result in results] == ["kb-1"]
        knowledge_index.embed.assert_awaited_once_with("password")
        assert knowledge_index.query.await_args.kwargs["top_k"] == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_embedding_failure_returns_empty(self, knowledge_index):
        knowledge_index.embed.side_effect = RuntimeError("embedding service down")

        assert await KnowledgeRetriever(knowledge_index).retrieve("password") == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_index_failure_returns_empty(self, knowledge_index):
        knowledge_index.query.side_effect = VectorStoreException("search failed")

        assert await KnowledgeRetriever(knowledge_index).retrieve("password") == []


class TestHybridSearch:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_keyword_hits_reorder_results(self, knowledge_index):
        knowledge_index.query.return_value = [
            _result("first", 0.90, "General account overview"),
            _result("second", 0.80, "Login error codes explained", title="Fixing a login error"),
            _result("third", 0.75, "Common LOGIN questions"),
        ]

        results = await KnowledgeRetriever(knowledge_index).hybrid_search("cannot log in", ["login", "error"])

        assert [result.id for result in results] == ["second", "first", "third"]
        assert results[0].score == pytest.approx(1.00)
        assert results[1].score == pytest.approx(0.90)
        assert results[2].score == pytest.approx(0.85)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_boosted_score_may_exceed_one(self, knowledge_index):
        knowledge_index.query.return_value = [_result("kb-1", 0.95, "login error timeout")]

        results = await KnowledgeRetriever(knowledge_index).hybrid_search("q", ["login", "error", "timeout"])

        assert results[0].score == pytest.approx(1.25)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_ties_keep_semantic_order(self, knowledge_index):
        knowledge_index.query.return_value = [
            _result("a", 0.80, "billing"),
            _result("b", 0.95, "nothing"),
            _result("c", 0.80, "billing"),
        ]

        results = await KnowledgeRetriever(knowledge_index).hybrid_search("q", ["billing"])

        assert [result.id for result in results] == ["b", "a", "c"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_blank_keywords_are_ignored(self, knowledge_index):
        knowledge_index.query.return_value = [
            _result("a", 0.90, "alpha"),
            _result("b", 0.80, "beta"),
        ]

        results = await KnowledgeRetriever(knowledge_index).hybrid_search("q", ["", "  "])

        assert [(result.id, result.score) for result in results] == [("a", 0.90), ("b", 0.80)]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_uses_candidate_pool_and_truncates(self, knowledge_index):
        knowledge_index.query.return_value = [
            _result(f"kb-{i}", 0.95 - i * 0.05, f"text {i}") for i in range(8)
        ]

        results = await KnowledgeRetriever(knowledge_index).hybrid_search("q")

        assert knowledge_index.query.await_args.kwargs["top_k"] == KnowledgeRetriever.HYBRID_CANDIDATES
        assert len(results) == KnowledgeRetriever.HYBRID_RESULTS
        assert all(result.score >= KnowledgeRetriever.HYBRID_MIN_SCORE for result in results)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failure_returns_empty(self, knowledge_index):
        knowledge_index.embed.side_effect = RuntimeError("down")

        assert await KnowledgeRetriever(knowledge_index).hybrid_search("q", ["login"]) == []


class TestIndexing:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_index_documents_reports_embedding_errors(self, knowledge_index):
        documents = [
            KnowledgeDocument(id="kb-1", title="Password reset", content="Use the sign-in page."),
            KnowledgeDocument(id="kb-2", title="", content="Broken"),
        ]

        async def embed(text):
            if text == "Broken":
                raise RuntimeError("input rejected")
            return [0.1, 0.2]

        knowledge_index.embed.side_effect = embed

        report = await KnowledgeRetriever(knowledge_index).index_documents(documents)

        assert report.indexed == 1
        assert report.errors == [{"id": "kb-2", "error": "input rejected"}]
        entries = knowledge_index.upsert.await_args.args[0]
        assert [document.id for document, _ in entries] == ["kb-1"]
        knowledge_index.embed.assert_any_await("Password reset\n\nUse the sign-in page.")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_index_documents_batches(self, knowledge_index, monkeypatch):
        monkeypatch.setattr(KnowledgeRetriever, "INDEX_BATCH_SIZE", 2)
        documents = [KnowledgeDocument(id=f"kb-{i}", title="", content=f"text {i}") for i in range(5)]

        report = await KnowledgeRetriever(knowledge_index).index_documents(documents)

        assert report.indexed == 5
        assert knowledge_index.upsert.await_count == 3

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_upsert_failure_marks_whole_batch(self, knowledge_index):
        knowledge_index.upsert.side_effect = VectorStoreException("write failed")
        documents = [KnowledgeDocument(id=f"kb-{i}", title="", content="text") for i in range(2)]

        report = await KnowledgeRetriever(knowledge_index).index_documents(documents)

        assert report.indexed == 0
        assert [error["id"] for error in report.errors] == ["kb-0", "kb-1"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_delete_and_stats(self, knowledge_index):
        retriever = KnowledgeRetriever(knowledge_index)

        assert await retriever.delete_documents(["kb-1", "kb-2"]) == 2
        assert (await retriever.get_stats())["total_vectors"] == 42
        assert await retriever.verify_connection() == {"success": True, "vector_count": 42}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_verify_connection_failure(self, knowledge_index):
        knowledge_index.stats.side_effect = VectorStoreException("unreachable")

        status = await KnowledgeRetriever(knowledge_index).verify_connection()

        assert status["success"] is False
        assert "unreachable" in status["message"]
