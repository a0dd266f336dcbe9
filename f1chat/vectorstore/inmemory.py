from __future__ import annotations

"""In-memory vector store for local testing and small datasets."""

import math
from dataclasses import dataclass, field
from typing import Any

from f1chat.rag.types import ContextDocument


@dataclass
class InMemoryVectorStore:
    """Simple in-memory vector store with cosine similarity search."""
    documents: list[ContextDocument] = field(default_factory=list)
    vectors: list[list[float]] = field(default_factory=list)

    def add(self, text: str, vector: list[float], metadata: dict[str, Any] | None = None) -> None:
        """Store a pre-embedded document."""
        self.documents.append(ContextDocument(text=text, metadata=dict(metadata or {})))
        self.vectors.append(list(vector))

    async def similarity_search(
        self, vector: list[float], limit: int
    ) -> list[ContextDocument]:
        """Rank stored documents by cosine similarity to ``vector``."""
        if not self.documents or limit <= 0:
            return []
        scored = [
            (doc, self._cosine_similarity(vector, stored))
            for doc, stored in zip(self.documents, self.vectors)
        ]
        scored.sort(key=lambda item: item[1], reverse=True)
        return [
            ContextDocument(text=doc.text, score=score, metadata=doc.metadata)
            for doc, score in scored[:limit]
        ]

    def _cosine_similarity(self, a: list[float], b: list[float]) -> float:
        """Compute cosine similarity between two vectors."""
        dot = sum(x * y for x, y in zip(a, b))
        norm_a = math.sqrt(sum(x * x for x in a))
        norm_b = math.sqrt(sum(y * y for y in b))
        if norm_a == 0.0 or norm_b == 0.0:
            return 0.0
        return dot / (norm_a * norm_b)

    async def health(self) -> dict[str, Any]:
        """Return health information for the vector store."""
        return {
            "backend": "memory",
            "ok": True,
            "detail": f"{len(self.documents)} documents",
        }
