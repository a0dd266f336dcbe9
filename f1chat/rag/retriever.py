from __future__ import annotations

"""Context retrieval from the vector store."""

import json
import logging
from dataclasses import dataclass

from f1chat.app.metrics import STAGE_DEGRADED
from f1chat.rag.types import ContextDocument
from f1chat.vectorstore.base import VectorStore

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 10


def serialize_context(documents: list[ContextDocument]) -> str:
    """Serialize ranked document texts into a JSON array, closest first."""
    if not documents:
        return ""
    return json.dumps([doc.text for doc in documents], ensure_ascii=False)


@dataclass(frozen=True)
class ContextRetriever:
    """Turn a query embedding into a context blob, degrading to empty on failure."""
    vectorstore: VectorStore
    top_k: int = DEFAULT_TOP_K

    async def retrieve(self, vector: list[float], request_id: str | None = None) -> str:
        if not vector:
            logger.info("retrieval_skipped", extra={"request_id": request_id, "reason": "empty_vector"})
            return ""
        try:
            documents = await self.vectorstore.similarity_search(vector, self.top_k)
        except Exception as exc:
            STAGE_DEGRADED.labels("retrieval").inc()
            logger.warning(
                "retrieval_failed",
                extra={"request_id": request_id, "detail": type(exc).__name__},
            )
            return ""
        logger.info(
            "retrieval_complete",
            extra={"request_id": request_id, "results": len(documents)},
        )
        return serialize_context(documents)
