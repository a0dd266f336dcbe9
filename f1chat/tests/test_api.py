from __future__ import annotations

import json

import httpx
import pytest

from f1chat.app import main as app_main
from f1chat.app.dependencies import reset_pipeline_cache
from f1chat.app.main import app
from f1chat.rag.embeddings import EmbeddingClient, HashEmbedder
from f1chat.rag.fallback import FallbackChain
from f1chat.rag.framing import decode_stream
from f1chat.rag.guardrails import FALLBACK_APOLOGY
from f1chat.rag.llm import HuggingFaceTextProvider, OpenAIChatProvider
from f1chat.rag.pipeline import ChatPipeline
from f1chat.rag.retriever import ContextRetriever
from f1chat.vectorstore.inmemory import InMemoryVectorStore

pytestmark = pytest.mark.anyio

QUESTION = {"messages": [{"role": "user", "content": "Who won the 2023 championship?"}]}
NO_MESSAGE_BODY = {"error": "No user message provided."}


def get_client() -> httpx.AsyncClient:
    reset_pipeline_cache()
    transport = httpx.ASGITransport(app=app)
    return httpx.AsyncClient(transport=transport, base_url="http://test")


async def seeded_store() -> InMemoryVectorStore:
    embedder = HashEmbedder(dimension=64)
    store = InMemoryVectorStore()
    for text in (
        "Max Verstappen won the 2023 Formula One World Championship.",
        "Red Bull Racing won the 2023 constructors' title.",
    ):
        store.add(text, await embedder.embed(text))
    return store


def build_pipeline(store: InMemoryVectorStore, generator: FallbackChain) -> ChatPipeline:
    return ChatPipeline(
        embedder=EmbeddingClient(provider=HashEmbedder(dimension=64)),
        retriever=ContextRetriever(vectorstore=store, top_k=10),
        generator=generator,
        chunk_size=40,
    )


async def test_health_endpoint() -> None:
    async with get_client() as client:
        response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_stats_health_reports_memory_backend() -> None:
    async with get_client() as client:
        response = await client.get("/stats/health")
    assert response.status_code == 200
    assert response.json()["backend"] == "memory"
    assert response.json()["ok"] is True


@pytest.mark.parametrize(
    "body",
    [
        {"messages": []},
        {"messages": [{"role": "user", "content": "   "}]},
        {"messages": [{"role": "user", "content": "hi"}, {"role": "assistant", "content": ""}]},
        {},
        {"messages": "not a list"},
        {"messages": [{"role": "user", "content": None}]},
        {"messages": [{"role": "user", "content": []}]},
        {"messages": [{"role": "user", "content": {}}]},
        {"messages": [{"role": "user"}]},
    ],
)
async def test_missing_question_returns_400(body) -> None:
    async with get_client() as client:
        response = await client.post("/api/chat", json=body)
    assert response.status_code == 400
    assert response.json() == NO_MESSAGE_BODY
    assert response.content == b'{"error":"No user message provided."}'


async def test_invalid_json_returns_400() -> None:
    async with get_client() as client:
        response = await client.post(
            "/api/chat", content=b"{not json", headers={"content-type": "application/json"}
        )
    assert response.status_code == 400
    assert response.json() == NO_MESSAGE_BODY


async def test_grounded_answer_streams_primary_text(monkeypatch) -> None:
    seen: dict[str, object] = {}

    def groq(request: httpx.Request) -> httpx.Response:
        seen["payload"] = json.loads(request.content)
        return httpx.Response(
            200, json={"choices": [{"message": {"content": "Max Verstappen."}}]}
        )

    primary = OpenAIChatProvider(
        api_key="gsk-test",
        base_url="http://groq.test/openai/v1",
        model="llama-3.3-70b-versatile",
        temperature=0.7,
        max_tokens=1024,
        timeout=5,
        client=httpx.AsyncClient(transport=httpx.MockTransport(groq)),
    )
    pipeline = build_pipeline(await seeded_store(), FallbackChain(primary=primary))
    monkeypatch.setattr(app_main, "get_pipeline", lambda: pipeline)

    async with get_client() as client:
        response = await client.post("/api/chat", json=QUESTION, headers={"X-Request-ID": "req-42"})

    assert response.status_code == 200
    assert response.headers["content-type"] == "text/plain; charset=utf-8"
    assert response.headers["cache-control"] == "no-cache"
    assert response.headers["x-request-id"] == "req-42"
    assert response.text == '0:"Max Verstappen."\n'
    assert decode_stream(response.text) == "Max Verstappen."
    messages = seen["payload"]["messages"]
    assert [message["role"] for message in messages] == ["system", "user"]
    assert "Max Verstappen won the 2023 Formula One World Championship." in messages[0]["content"]


async def test_no_credential_and_failing_fallback_streams_apology(monkeypatch) -> None:
    calls: list[str] = []

    def huggingface(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(503, json={"error": "Model is currently loading"})

    secondary = HuggingFaceTextProvider(
        base_url="http://hf.test",
        token=None,
        max_new_tokens=256,
        timeout=5,
        client=httpx.AsyncClient(transport=httpx.MockTransport(huggingface)),
    )
    chain = FallbackChain(
        primary=None,
        secondary=secondary,
        text_models=("gpt2", "distilgpt2"),
        text2text_models=("google/flan-t5-base",),
    )
    pipeline = build_pipeline(await seeded_store(), chain)
    monkeypatch.setattr(app_main, "get_pipeline", lambda: pipeline)

    async with get_client() as client:
        response = await client.post("/api/chat", json=QUESTION)

    assert response.status_code == 200
    assert decode_stream(response.text) == FALLBACK_APOLOGY
    assert calls == ["/models/gpt2", "/models/distilgpt2", "/models/google/flan-t5-base"]


async def test_no_provider_configured_returns_400(monkeypatch) -> None:
    pipeline = build_pipeline(InMemoryVectorStore(), FallbackChain())
    monkeypatch.setattr(app_main, "get_pipeline", lambda: pipeline)

    async with get_client() as client:
        response = await client.post("/api/chat", json=QUESTION)

    assert response.status_code == 400
    assert "GROQ_API_KEY" in response.json()["error"]


async def test_setup_failure_returns_500(monkeypatch) -> None:
    def broken_pipeline() -> ChatPipeline:
        raise RuntimeError("vector store misconfigured")

    monkeypatch.setattr(app_main, "get_pipeline", broken_pipeline)

    async with get_client() as client:
        response = await client.post("/api/chat", json=QUESTION)

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


async def test_metrics_endpoint_exposes_generation_counters() -> None:
    async with get_client() as client:
        response = await client.get("/metrics")
    assert response.status_code == 200
    assert "http_requests_total" in response.text
    assert "chat_generation_attempts_total" in response.text
