from __future__ import annotations

"""Ordered provider fallback for answer generation."""

import logging
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator, Iterator

from f1chat.app.metrics import GENERATION_ATTEMPTS
from f1chat.rag.framing import DEFAULT_CHUNK_SIZE, rechunk
from f1chat.rag.llm import (
    TEXT2TEXT_GENERATION,
    TEXT_GENERATION,
    HuggingFaceTextProvider,
    OpenAIChatProvider,
)
from f1chat.rag.prompts import flatten_prompt
from f1chat.rag.types import AssembledPrompt

logger = logging.getLogger(__name__)

PRIMARY_TIER = 1
SECONDARY_TIER = 2


@dataclass(frozen=True)
class GenerationAttempt:
    """One (provider, model) candidate and its not-yet-started delta stream."""
    tier: int
    provider: str
    model: str
    deltas: AsyncIterator[str]


@dataclass(frozen=True)
class FallbackChain:
    """Try the primary provider, then each secondary model, strictly in order.

    The first attempt that produces a non-empty delta wins and the rest are
    never started. A chain that produces nothing means every candidate failed.
    """
    primary: OpenAIChatProvider | None = None
    secondary: HuggingFaceTextProvider | None = None
    text_models: tuple[str, ...] = ()
    text2text_models: tuple[str, ...] = ()
    primary_stream: bool = False
    chunk_size: int = DEFAULT_CHUNK_SIZE

    @property
    def available(self) -> bool:
        """Return True when at least one candidate can be attempted."""
        if self.primary is not None:
            return True
        return self.secondary is not None and bool(self.text_models or self.text2text_models)

    def attempts(self, prompt: AssembledPrompt) -> Iterator[GenerationAttempt]:
        """Yield candidates lazily in declared order."""
        if self.primary is not None:
            yield GenerationAttempt(
                tier=PRIMARY_TIER,
                provider=self.primary.name,
                model=self.primary.model,
                deltas=self._primary_deltas(prompt),
            )
        if self.secondary is None:
            return
        prompt_text = flatten_prompt(prompt)
        families = ((TEXT_GENERATION, self.text_models), (TEXT2TEXT_GENERATION, self.text2text_models))
        for task, models in families:
            for model in models:
                yield GenerationAttempt(
                    tier=SECONDARY_TIER,
                    provider=self.secondary.name,
                    model=model,
                    deltas=self._secondary_deltas(model, task, prompt_text),
                )

    async def _primary_deltas(self, prompt: AssembledPrompt) -> AsyncIterator[str]:
        messages = prompt.as_dicts()
        if self.primary_stream:
            async with aclosing(self.primary.stream(messages)) as deltas:
                async for delta in deltas:
                    yield delta
            return
        text = await self.primary.complete(messages)
        if not text.strip():
            return
        async for piece in rechunk(text, self.chunk_size):
            yield piece

    async def _secondary_deltas(self, model: str, task: str, prompt_text: str) -> AsyncIterator[str]:
        text = await self.secondary.generate(model, task, prompt_text)
        if not text.strip():
            return
        async for piece in rechunk(text, self.chunk_size):
            yield piece

    async def stream(
        self, prompt: AssembledPrompt, request_id: str | None = None
    ) -> AsyncIterator[str]:
        """Yield the winning attempt's deltas; yield nothing if all attempts fail."""
        tier = None
        for attempt in self.attempts(prompt):
            if attempt.tier != tier:
                tier = attempt.tier
                logger.info("generation_tier", extra={"request_id": request_id, "tier": tier})
            async with aclosing(attempt.deltas) as deltas:
                try:
                    first = await _first_delta(deltas)
                except Exception as exc:
                    GENERATION_ATTEMPTS.labels(attempt.provider, attempt.model, "error").inc()
                    logger.warning(
                        "generation_attempt_failed",
                        extra={
                            "request_id": request_id,
                            "tier": attempt.tier,
                            "provider": attempt.provider,
                            "model": attempt.model,
                            "detail": type(exc).__name__,
                        },
                    )
                    continue
                if first is None:
                    GENERATION_ATTEMPTS.labels(attempt.provider, attempt.model, "empty").inc()
                    logger.warning(
                        "generation_attempt_empty",
                        extra={
                            "request_id": request_id,
                            "tier": attempt.tier,
                            "provider": attempt.provider,
                            "model": attempt.model,
                        },
                    )
                    continue
                GENERATION_ATTEMPTS.labels(attempt.provider, attempt.model, "success").inc()
                logger.info(
                    "generation_selected",
                    extra={
                        "request_id": request_id,
                        "tier": attempt.tier,
                        "provider": attempt.provider,
                        "model": attempt.model,
                    },
                )
                yield first
                async for delta in deltas:
                    if delta:
                        yield delta
                return
        logger.warning("generation_exhausted", extra={"request_id": request_id})


async def _first_delta(deltas: AsyncIterator[str]) -> str | None:
    """Advance a delta stream to its first non-empty piece."""
    async for delta in deltas:
        if delta:
            return delta
    return None
