from __future__ import annotations

"""Embedding providers and response normalization."""

import hashlib
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from f1chat.app.metrics import STAGE_DEGRADED

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[a-z0-9]+")


class EmbeddingError(RuntimeError):
    """Raised when embeddings fail or are invalid."""
    pass


class EmbeddingConfigError(RuntimeError):
    """Raised when embedding configuration is invalid."""
    pass


class EmbeddingProvider(Protocol):
    """Protocol for embedding providers."""

    async def embed(self, text: str) -> list[float]:
        """Return an embedding vector for the provided text."""
        raise NotImplementedError


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _numeric_list(values: list[Any]) -> list[float] | None:
    if not values or not all(_is_number(value) for value in values):
        return None
    return [float(value) for value in values]


def normalize_embedding(raw: Any) -> list[float]:
    """Resolve a provider response into a flat vector.

    Accepted shapes are a flat numeric list, a batch of numeric lists (the
    first entry is used) and a mapping of numerics (values in iteration
    order). Anything else yields an empty vector.
    """
    vector: list[float] | None = None
    if isinstance(raw, list) and raw:
        if _is_number(raw[0]):
            vector = _numeric_list(raw)
        elif isinstance(raw[0], list):
            vector = _numeric_list(raw[0])
    elif isinstance(raw, dict):
        vector = _numeric_list(list(raw.values()))
    if vector is None:
        logger.warning(
            "embedding_unexpected_shape",
            extra={"shape": type(raw).__name__},
        )
        return []
    return vector


@dataclass
class HashEmbedder:
    """Deterministic hash-based embedder for testing or offline use."""
    dimension: int = 384

    async def embed(self, text: str) -> list[float]:
        """Embed text using token hashing and L2 normalization."""
        tokens = _TOKEN_RE.findall(text.lower())
        vector = [0.0] * self.dimension
        for token in tokens:
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            idx = digest[0] % self.dimension
            vector[idx] += 1.0
        return self._l2_normalize(vector)

    def _l2_normalize(self, vector: list[float]) -> list[float]:
        """Normalize vector magnitude to 1.0."""
        norm = math.sqrt(sum(value * value for value in vector))
        if norm == 0.0:
            return vector
        return [value / norm for value in vector]


@dataclass(frozen=True)
class HuggingFaceEmbedder:
    """Embedding provider using the Hugging Face feature-extraction pipeline."""
    base_url: str
    model: str
    token: str | None
    timeout: float
    client: httpx.AsyncClient | None = None

    async def embed(self, text: str) -> list[float]:
        """Embed text and normalize whichever shape the service returns."""
        url = f"{self.base_url.rstrip('/')}/models/{self.model}/pipeline/feature-extraction"
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        data = await _post_json(
            url,
            {"inputs": text},
            headers=headers,
            timeout=self.timeout,
            client=self.client,
        )
        return normalize_embedding(data)


@dataclass(frozen=True)
class OllamaEmbedder:
    """Embedding provider using the Ollama embeddings API."""
    base_url: str
    model: str
    timeout: float
    client: httpx.AsyncClient | None = None

    async def embed(self, text: str) -> list[float]:
        """Embed text using a locally pulled Ollama model."""
        data = await _post_json(
            f"{self.base_url.rstrip('/')}/api/embeddings",
            {"model": self.model, "prompt": text},
            headers={},
            timeout=self.timeout,
            client=self.client,
        )
        if isinstance(data, dict) and "embedding" in data:
            data = data["embedding"]
        return normalize_embedding(data)


async def _post_json(
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str],
    timeout: float,
    client: httpx.AsyncClient | None,
) -> Any:
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=timeout)
    try:
        response = await client.post(url, json=payload, headers=headers)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPError as exc:
        raise EmbeddingError(str(exc)) from exc
    except ValueError as exc:
        raise EmbeddingError("Embedding response is not valid JSON") from exc
    finally:
        if owns_client and client is not None:
            await client.aclose()


@dataclass(frozen=True)
class EmbeddingClient:
    """Boundary around an embedding provider that never raises."""
    provider: EmbeddingProvider

    async def embed(self, text: str) -> list[float]:
        """Return the query embedding, or an empty vector on any failure."""
        try:
            vector = await self.provider.embed(text)
        except Exception as exc:
            STAGE_DEGRADED.labels("embedding").inc()
            logger.warning(
                "embedding_failed",
                extra={"detail": type(exc).__name__},
            )
            return []
        if not vector:
            STAGE_DEGRADED.labels("embedding").inc()
        return vector or []
