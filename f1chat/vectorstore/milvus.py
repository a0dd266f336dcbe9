from __future__ import annotations

"""Milvus-backed vector store (retrieval only)."""

import asyncio
from dataclasses import dataclass
from typing import Any

from f1chat.rag.types import ContextDocument
from f1chat.vectorstore.base import VectorStoreError


class MilvusDependencyError(RuntimeError):
    """Raised when Milvus dependencies are missing."""
    pass


@dataclass
class MilvusConfig:
    """Configuration for Milvus connection and search."""
    uri: str
    token: str | None
    collection: str
    metric_type: str
    nprobe: int
    text_field: str = "text"
    vector_field: str = "embedding"


@dataclass
class MilvusVectorStore:
    """Search an existing Milvus collection populated by the ingestion job."""
    config: MilvusConfig

    def __post_init__(self) -> None:
        """Connect to Milvus and bind the configured collection."""
        try:
            from pymilvus import Collection, connections, utility
        except ImportError as exc:
            raise MilvusDependencyError("pymilvus is required for MilvusVectorStore") from exc
        connections.connect(
            alias="default",
            uri=self.config.uri,
            token=self.config.token,
        )
        if not utility.has_collection(self.config.collection):
            raise VectorStoreError(f"Milvus collection not found: {self.config.collection}")
        self.collection = Collection(self.config.collection)

    async def similarity_search(
        self, vector: list[float], limit: int
    ) -> list[ContextDocument]:
        """Run a dense vector search without any filter expression."""
        if limit <= 0:
            return []
        try:
            return await asyncio.to_thread(self._search, vector, limit)
        except VectorStoreError:
            raise
        except Exception as exc:
            raise VectorStoreError(str(exc)) from exc

    def _search(self, vector: list[float], limit: int) -> list[ContextDocument]:
        self.collection.load()
        results = self.collection.search(
            data=[vector],
            anns_field=self.config.vector_field,
            param={"metric_type": self.config.metric_type, "params": {"nprobe": self.config.nprobe}},
            limit=limit,
            output_fields=[self.config.text_field],
        )
        documents: list[ContextDocument] = []
        for hit in results[0]:
            text = hit.entity.get(self.config.text_field)
            if not isinstance(text, str):
                continue
            documents.append(ContextDocument(text=text, score=float(hit.score)))
        return documents

    async def health(self) -> dict[str, Any]:
        """Return collection health info."""
        try:
            _ = await asyncio.to_thread(lambda: self.collection.num_entities)
        except Exception as exc:
            return {
                "backend": "milvus",
                "ok": False,
                "detail": str(exc),
            }
        return {
            "backend": "milvus",
            "ok": True,
            "collection": self.config.collection,
        }
