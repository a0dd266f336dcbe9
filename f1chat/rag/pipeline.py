from __future__ import annotations

import logging
import uuid
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Sequence

from f1chat.rag.embeddings import EmbeddingClient
from f1chat.rag.fallback import FallbackChain
from f1chat.rag.framing import DEFAULT_CHUNK_SIZE, frame_deltas, rechunk
from f1chat.rag.guardrails import FALLBACK_APOLOGY, NO_USER_MESSAGE, require_question
from f1chat.rag.prompts import assemble_prompt
from f1chat.rag.retriever import ContextRetriever
from f1chat.rag.types import AssembledPrompt, Message

logger = logging.getLogger(__name__)

MISSING_CREDENTIAL = "GROQ_API_KEY is not configured and no fallback model is available."


class ChatError(RuntimeError):
    """Raised for chat requests that must end before streaming starts."""
    pass


class ChatInputError(ChatError):
    pass


class CredentialError(ChatError):
    pass


class ChatState(str, Enum):
    RECEIVED = "received"
    EMBEDDING = "embedding"
    RETRIEVING = "retrieving"
    ASSEMBLING = "assembling"
    GENERATING = "generating"
    FRAMING = "framing"
    CLOSED = "closed"
    FAILED = "failed"


@dataclass
class ChatRun:
    """State owned by a single chat request."""
    request_id: str
    messages: tuple[Message, ...]
    question: str
    vector: list[float] = field(default_factory=list)
    context: str = ""
    prompt: AssembledPrompt | None = None
    state: ChatState = ChatState.RECEIVED

    def transition(self, state: ChatState) -> None:
        self.state = state
        logger.info("chat_state", extra={"request_id": self.request_id, "state": state.value})


@dataclass
class ChatPipeline:
    embedder: EmbeddingClient
    retriever: ContextRetriever
    generator: FallbackChain
    chunk_size: int = DEFAULT_CHUNK_SIZE

    async def prepare(
        self, messages: Sequence[Message], request_id: str | None = None
    ) -> ChatRun:
        """Validate, embed, retrieve and assemble; every stage failure degrades."""
        guardrail = require_question(messages)
        if not guardrail.allowed:
            raise ChatInputError(NO_USER_MESSAGE)
        if not self.generator.available:
            raise CredentialError(MISSING_CREDENTIAL)
        run = ChatRun(
            request_id=request_id or str(uuid.uuid4()),
            messages=tuple(messages),
            question=messages[-1].content.strip(),
        )
        run.transition(ChatState.EMBEDDING)
        run.vector = await self.embedder.embed(run.question)
        run.transition(ChatState.RETRIEVING)
        run.context = await self.retriever.retrieve(run.vector, request_id=run.request_id)
        run.transition(ChatState.ASSEMBLING)
        run.prompt = assemble_prompt(run.context, run.question, run.messages)
        return run

    async def respond(self, run: ChatRun) -> AsyncIterator[str]:
        """Yield framed answer chunks; always ends with a closed, well-formed stream."""
        run.transition(ChatState.GENERATING)
        emitted = False
        try:
            async with aclosing(frame_deltas(self._answer(run))) as frames:
                async for frame in frames:
                    if not emitted:
                        run.transition(ChatState.FRAMING)
                        emitted = True
                    yield frame
        except Exception as exc:
            run.transition(ChatState.FAILED)
            logger.error(
                "chat_stream_failed",
                extra={"request_id": run.request_id, "detail": type(exc).__name__},
            )
            apology = f"\n\n{FALLBACK_APOLOGY}" if emitted else FALLBACK_APOLOGY
            async for frame in frame_deltas(rechunk(apology, self.chunk_size)):
                yield frame
            return
        run.transition(ChatState.CLOSED)

    async def stream(
        self, messages: Sequence[Message], request_id: str | None = None
    ) -> AsyncIterator[str]:
        """Run the whole lifecycle for callers that do not need the pre-stream split."""
        run = await self.prepare(messages, request_id=request_id)
        async with aclosing(self.respond(run)) as frames:
            async for frame in frames:
                yield frame

    async def _answer(self, run: ChatRun) -> AsyncIterator[str]:
        produced = False
        async with aclosing(
            self.generator.stream(run.prompt, request_id=run.request_id)
        ) as deltas:
            async for delta in deltas:
                produced = True
                yield delta
        if not produced:
            logger.warning("generation_apology", extra={"request_id": run.request_id})
            async for piece in rechunk(FALLBACK_APOLOGY, self.chunk_size):
                yield piece
