from __future__ import annotations

"""Similarity-query contract shared by vector store backends."""

from typing import Any, Protocol

from f1chat.rag.types import ContextDocument


class VectorStoreError(RuntimeError):
    """Raised when a similarity query fails or returns an invalid payload."""
    pass


class VectorStore(Protocol):
    """Backend able to return the documents nearest to a query vector."""

    async def similarity_search(
        self, vector: list[float], limit: int
    ) -> list[ContextDocument]:
        """Return up to ``limit`` documents ranked closest first."""
        raise NotImplementedError

    async def health(self) -> dict[str, Any]:
        """Return health information for the backend."""
        raise NotImplementedError
