"""
Vector Store Infrastructure
============================

Milvus (Zilliz Cloud) vector store for knowledge base storage and retrieval.

This module provides a clean interface for vector operations following
the Repository pattern.
"""

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pymilvus import MilvusClient

from deskpilot.config import settings
from deskpilot.core import VectorStoreException
from deskpilot.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

# Scalar fields stored next to each vector
OUTPUT_FIELDS = ["text", "title", "url", "category", "last_updated"]


@dataclass
class Document:
    """Document for vector storage."""
    id: str
    text: str
    embedding: List[float]
    metadata: dict


@dataclass
class SearchResult:
    """Result from vector search."""
    content: str
    metadata: dict
    score: float
    id: Optional[str] = None


@dataclass
class IndexStats:
    """Vector counts of the knowledge index."""
    total_vectors: int
    dimension: int
    collections: Dict[str, int] = field(default_factory=dict)


class IVectorStore(ABC):
    """
    Interface for vector store operations.

    Following Interface Segregation and Dependency Inversion principles.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the vector store."""

    @abstractmethod
    async def upsert(self, documents: List[Document]) -> int:
        """Insert or replace documents. Returns the number written."""

    @abstractmethod
    async def search(
        self,
        query_embedding: List[float],
        top_k: int = 5,
        filter: Optional[Dict[str, Any]] = None
    ) -> List[SearchResult]:
        """Search for similar documents."""

    @abstractmethod
    async def delete(self, ids: List[str]) -> int:
        """Delete documents by ID. Returns the number deleted."""

    @abstractmethod
    async def get_stats(self) -> IndexStats:
        """Get vector counts."""


def build_filter_expression(filter: Optional[Dict[str, Any]]) -> str:
    """
    Translate an equality filter dict into a Milvus boolean expression.

    Lists become ``in`` clauses; all clauses are joined with ``and``.
    """
    if not filter:
        return ""

    clauses = []
    for key, value in filter.items():
        if not key.isidentifier():
            raise VectorStoreException(f"Invalid filter field: {key!r}")
        if isinstance(value, (list, tuple, set)):
            clauses.append(f"{key} in {json.dumps(list(value))}")
        else:
            clauses.append(f"{key} == {json.dumps(value)}")
    return " and ".join(clauses)


class MilvusVectorStore(IVectorStore):
    """
    Zilliz Cloud (Managed Milvus) implementation of vector store.

    The collection uses string primary keys and COSINE similarity, so the
    returned distance is a similarity score where higher is better.

    pymilvus is synchronous; every call runs in a worker thread.
    """

    def __init__(
        self,
        collection_name: Optional[str] = None,
        uri: Optional[str] = None,
        api_key: Optional[str] = None,
        dimension: Optional[int] = None
    ):
        self._collection_name = collection_name or settings.milvus_collection_name
        self._dimension = dimension or settings.embedding_dimension
        self._uri = uri or settings.zilliz_uri
        self._api_key = api_key or settings.zilliz_api_key
        self._client: Optional[MilvusClient] = None
        self._initialized = False

    @property
    def collection_name(self) -> str:
        return self._collection_name

    async def initialize(self) -> None:
        """Initialize Zilliz Cloud client and collection."""
        if self._initialized:
            return

        if not self._uri:
            raise VectorStoreException("ZILLIZ_URI not configured")

        try:
            self._client = MilvusClient(uri=self._uri, token=self._api_key)

            exists = await asyncio.to_thread(self._client.has_collection, self._collection_name)
            if not exists:
                await asyncio.to_thread(
                    self._client.create_collection,
                    collection_name=self._collection_name,
                    dimension=self._dimension,
                    id_type="string",
                    max_length=512,
                    metric_type="COSINE"
                )
                logger.info(
                    "Milvus collection created",
                    extra={"collection": self._collection_name, "dimension": self._dimension}
                )

            self._initialized = True

        except VectorStoreException:
            raise
        except Exception as e:
            raise VectorStoreException(f"Failed to initialize Milvus: {str(e)}")

    async def _ensure_client(self) -> MilvusClient:
        if not self._initialized:
            await self.initialize()
        if not self._client:
            raise VectorStoreException("Vector store not initialized")
        return self._client

    async def upsert(self, documents: List[Document]) -> int:
        """
        Insert or replace documents in the collection.

        Raises:
            VectorStoreException: If the write fails
        """
        if not documents:
            return 0

        client = await self._ensure_client()

        data = [
            {
                "id": doc.id,
                "vector": doc.embedding,
                "text": doc.text,
                "title": doc.metadata.get("title", ""),
                "url": doc.metadata.get("url", ""),
                "category": doc.metadata.get("category", ""),
                "last_updated": doc.metadata.get("last_updated", ""),
            }
            for doc in documents
        ]

        try:
            await asyncio.to_thread(
                client.upsert,
                collection_name=self._collection_name,
                data=data
            )
        except Exception as e:
            raise VectorStoreException(f"Failed to upsert documents: {str(e)}")

        return len(data)

    async def search(
        self,
        query_embedding: List[float],
        top_k: int = 5,
        filter: Optional[Dict[str, Any]] = None
    ) -> List[SearchResult]:
        """
        Search for the ``top_k`` nearest documents.

        Raises:
            VectorStoreException: If search fails
        """
        client = await self._ensure_client()
        expression = build_filter_expression(filter)

        try:
            results = await asyncio.to_thread(
                client.search,
                collection_name=self._collection_name,
                data=[query_embedding],
                limit=top_k,
                filter=expression,
                output_fields=OUTPUT_FIELDS
            )
        except Exception as e:
            raise VectorStoreException(f"Search failed: {str(e)}")

        formatted_results = []
        if results and len(results) > 0:
            for hit in results[0]:
                entity = hit.get("entity", {})
                formatted_results.append(SearchResult(
                    content=entity.get("text", ""),
                    metadata={
                        "title": entity.get("title", ""),
                        "url": entity.get("url", ""),
                        "category": entity.get("category", ""),
                    },
                    score=float(hit.get("distance", 0.0)),
                    id=str(hit.get("id")) if hit.get("id") is not None else None
                ))

        return formatted_results

    async def delete(self, ids: List[str]) -> int:
        """Delete documents by primary key."""
        if not ids:
            return 0

        client = await self._ensure_client()

        try:
            result = await asyncio.to_thread(
                client.delete,
                collection_name=self._collection_name,
                ids=ids
            )
        except Exception as e:
            raise VectorStoreException(f"Delete failed: {str(e)}")

        if isinstance(result, dict) and "delete_count" in result:
            return int(result["delete_count"])
        return len(ids)

    async def get_stats(self) -> IndexStats:
        """Get the number of stored vectors."""
        client = await self._ensure_client()

        try:
            stats = await asyncio.to_thread(client.get_collection_stats, self._collection_name)
        except Exception as e:
            raise VectorStoreException(f"Failed to read collection stats: {str(e)}")

        row_count = int(stats.get("row_count", 0))
        return IndexStats(
            total_vectors=row_count,
            dimension=self._dimension,
            collections={self._collection_name: row_count}
        )
