from __future__ import annotations

"""Astra DB Data API vector store (query side only)."""

from dataclasses import dataclass
from typing import Any

import httpx

from f1chat.rag.types import ContextDocument
from f1chat.vectorstore.base import VectorStoreError


@dataclass(frozen=True)
class AstraConfig:
    """Connection settings for an Astra DB collection."""
    api_endpoint: str
    token: str
    keyspace: str
    collection: str
    timeout: float


@dataclass(frozen=True)
class AstraVectorStore:
    """Vector store backed by an Astra DB collection with a ``$vector`` field."""
    config: AstraConfig
    client: httpx.AsyncClient | None = None

    def __post_init__(self) -> None:
        if not self.config.api_endpoint:
            raise VectorStoreError("ASTRA_DB_API_ENDPOINT is required for AstraVectorStore")
        if not self.config.token:
            raise VectorStoreError("ASTRA_DB_APPLICATION_TOKEN is required for AstraVectorStore")
        if not self.config.collection:
            raise VectorStoreError("ASTRA_DB_COLLECTION is required for AstraVectorStore")

    @property
    def keyspace_url(self) -> str:
        return f"{self.config.api_endpoint.rstrip('/')}/api/json/v1/{self.config.keyspace}"

    async def similarity_search(
        self, vector: list[float], limit: int
    ) -> list[ContextDocument]:
        """Run a ``find`` sorted by vector distance with no filter."""
        payload = {
            "find": {
                "sort": {"$vector": vector},
                "options": {"limit": limit, "includeSimilarity": True},
            }
        }
        data = await self._command(f"{self.keyspace_url}/{self.config.collection}", payload)
        documents = (data.get("data") or {}).get("documents")
        if not isinstance(documents, list):
            raise VectorStoreError("Astra response is missing data.documents")
        results: list[ContextDocument] = []
        for doc in documents:
            if not isinstance(doc, dict):
                continue
            text = doc.get("text")
            if not isinstance(text, str):
                continue
            similarity = doc.get("$similarity")
            metadata = {
                key: value
                for key, value in doc.items()
                if key not in {"text", "$vector", "$similarity"}
            }
            results.append(
                ContextDocument(
                    text=text,
                    score=float(similarity) if isinstance(similarity, (int, float)) else None,
                    metadata=metadata,
                )
            )
        return results

    async def health(self) -> dict[str, Any]:
        """Check that the configured collection exists in the keyspace."""
        try:
            data = await self._command(self.keyspace_url, {"findCollections": {}})
        except VectorStoreError as exc:
            return {"backend": "astra", "ok": False, "detail": str(exc)}
        names = (data.get("status") or {}).get("collections") or []
        if self.config.collection not in names:
            return {
                "backend": "astra",
                "ok": False,
                "detail": "Collection not found",
                "collection": self.config.collection,
            }
        return {"backend": "astra", "ok": True, "collection": self.config.collection}

    async def _command(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a Data API command and surface API-level errors."""
        client = self.client
        owns_client = client is None
        if owns_client:
            client = httpx.AsyncClient(timeout=self.config.timeout)
        headers = {"Token": self.config.token, "Content-Type": "application/json"}
        try:
            response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise VectorStoreError(str(exc)) from exc
        except ValueError as exc:
            raise VectorStoreError("Astra response is not valid JSON") from exc
        finally:
            if owns_client and client is not None:
                await client.aclose()
        if not isinstance(data, dict):
            raise VectorStoreError("Astra response is not a JSON object")
        errors = data.get("errors")
        if errors:
            first = errors[0] if isinstance(errors, list) else errors
            message = first.get("message") if isinstance(first, dict) else str(first)
            raise VectorStoreError(f"Astra command failed: {message}")
        return data
