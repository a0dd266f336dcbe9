from __future__ import annotations

"""FastAPI application entrypoint for the streaming F1 chat service."""

import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from f1chat.app.dependencies import get_pipeline, get_vectorstore
from f1chat.app.metrics import metrics_middleware, metrics_response
from f1chat.app.schemas import ChatRequest, ErrorResponse, StatsHealthResponse
from f1chat.app.settings import settings
from f1chat.rag.guardrails import NO_USER_MESSAGE
from f1chat.rag.pipeline import ChatError

logger = logging.getLogger(__name__)

app = FastAPI(title="F1 Chat", version="0.1.0")

STREAM_HEADERS = {"Cache-Control": "no-cache"}
STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"


def _configure_logging() -> None:
    """Configure root logging using environment settings."""
    level_name = settings.log_level.strip().upper()
    level = getattr(logging, level_name, logging.INFO)
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    logger.setLevel(level)


_configure_logging()


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message).model_dump(),
    )


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Attach or create a request ID for traceability."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.middleware("http")
async def record_metrics(request: Request, call_next):
    """Capture request metrics before returning the response."""
    return await metrics_middleware(request, call_next)


@app.get("/metrics")
async def metrics():
    """Expose Prometheus-style metrics."""
    return metrics_response()


@app.get("/health")
async def health() -> dict[str, str]:
    """Simple health probe for uptime checks."""
    return {"status": "ok"}


@app.get("/stats/health", response_model=StatsHealthResponse)
async def stats_health() -> StatsHealthResponse:
    """Return vector store health status."""
    try:
        vectorstore = get_vectorstore()
    except Exception as exc:
        return StatsHealthResponse(
            backend=settings.vectorstore_backend,
            ok=False,
            detail=str(exc),
        )
    return StatsHealthResponse(**await vectorstore.health())


@app.post("/api/chat")
async def chat(http_request: Request):
    """Answer the latest message of a conversation as a stream of text-delta frames."""
    request_id = getattr(http_request.state, "request_id", str(uuid.uuid4()))
    try:
        payload = await http_request.json()
        chat_request = ChatRequest.model_validate(payload)
    except (ValueError, ValidationError):
        logger.info("chat_invalid_request", extra={"request_id": request_id})
        return _error_response(400, NO_USER_MESSAGE)
    try:
        pipeline = get_pipeline()
        run = await pipeline.prepare(chat_request.to_messages(), request_id=request_id)
    except ChatError as exc:
        logger.info(
            "chat_rejected",
            extra={"request_id": request_id, "detail": type(exc).__name__},
        )
        return _error_response(400, str(exc))
    except Exception as exc:
        logger.error(
            "chat_failed",
            extra={"request_id": request_id, "detail": type(exc).__name__},
        )
        return _error_response(500, "Internal server error")
    return StreamingResponse(
        pipeline.respond(run),
        media_type=STREAM_MEDIA_TYPE,
        headers=STREAM_HEADERS,
    )
