from __future__ import annotations

import logging

import pytest

from f1chat.rag.fallback import FallbackChain
from f1chat.rag.llm import TEXT2TEXT_GENERATION, TEXT_GENERATION, LLMError
from f1chat.rag.prompts import assemble_prompt
from f1chat.rag.types import Message

pytestmark = pytest.mark.anyio

PROMPT = assemble_prompt("", "Who won?", [Message("user", "Who won?")])


class FakePrimary:
    name = "groq"
    model = "llama"

    def __init__(self, text: str = "", error: Exception | None = None, deltas: list[str] | None = None):
        self.text = text
        self.error = error
        self.deltas = deltas or []
        self.complete_calls = 0
        self.stream_calls = 0

    async def complete(self, messages: list[dict[str, str]]) -> str:
        self.complete_calls += 1
        assert messages[0]["role"] == "system"
        if self.error is not None:
            raise self.error
        return self.text

    async def stream(self, messages: list[dict[str, str]]):
        self.stream_calls += 1
        if self.error is not None:
            raise self.error
        for delta in self.deltas:
            yield delta


class FakeSecondary:
    name = "huggingface"

    def __init__(self, outcomes: dict[str, str | Exception] | None = None):
        self.outcomes = outcomes or {}
        self.calls: list[tuple[str, str]] = []

    async def generate(self, model: str, task: str, prompt: str) -> str:
        self.calls.append((model, task))
        outcome = self.outcomes.get(model, LLMError("unavailable"))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


async def collect(chain: FallbackChain) -> str:
    return "".join([delta async for delta in chain.stream(PROMPT)])


async def test_primary_success_skips_secondary() -> None:
    primary = FakePrimary(text="Max Verstappen.")
    secondary = FakeSecondary()
    chain = FallbackChain(primary=primary, secondary=secondary, text_models=("gpt2",))

    assert await collect(chain) == "Max Verstappen."
    assert primary.complete_calls == 1
    assert secondary.calls == []


async def test_primary_failure_falls_through_in_declared_order() -> None:
    primary = FakePrimary(error=LLMError("401"))
    secondary = FakeSecondary({"distilgpt2": "", "google/flan-t5-base": "Lewis Hamilton.", "google/flan-t5-small": "never"})
    chain = FallbackChain(
        primary=primary,
        secondary=secondary,
        text_models=("gpt2", "distilgpt2"),
        text2text_models=("google/flan-t5-base", "google/flan-t5-small"),
    )

    assert await collect(chain) == "Lewis Hamilton."
    assert primary.complete_calls == 1
    assert secondary.calls == [
        ("gpt2", TEXT_GENERATION),
        ("distilgpt2", TEXT_GENERATION),
        ("google/flan-t5-base", TEXT2TEXT_GENERATION),
    ]


async def test_all_candidates_failing_yields_nothing() -> None:
    secondary = FakeSecondary()
    chain = FallbackChain(
        primary=None,
        secondary=secondary,
        text_models=("gpt2",),
        text2text_models=("google/flan-t5-small",),
    )

    assert await collect(chain) == ""
    assert [model for model, _ in secondary.calls] == ["gpt2", "google/flan-t5-small"]


async def test_whitespace_only_primary_counts_as_empty() -> None:
    primary = FakePrimary(text="   ")
    secondary = FakeSecondary({"gpt2": "Ferrari."})
    chain = FallbackChain(primary=primary, secondary=secondary, text_models=("gpt2",))

    assert await collect(chain) == "Ferrari."


async def test_one_shot_answer_is_rechunked() -> None:
    text = "a" * 100
    chain = FallbackChain(primary=FakePrimary(text=text), chunk_size=40)

    deltas = [delta async for delta in chain.stream(PROMPT)]

    assert [len(delta) for delta in deltas] == [40, 40, 20]


async def test_streaming_primary_passes_deltas_through() -> None:
    primary = FakePrimary(deltas=["", "Max", " Verstappen", "."])
    chain = FallbackChain(primary=primary, primary_stream=True)

    deltas = [delta async for delta in chain.stream(PROMPT)]

    assert deltas == ["Max", " Verstappen", "."]
    assert primary.stream_calls == 1
    assert primary.complete_calls == 0


async def test_streaming_primary_failure_before_first_delta_falls_back() -> None:
    primary = FakePrimary(error=LLMError("503"))
    chain = FallbackChain(
        primary=primary,
        secondary=FakeSecondary({"gpt2": "Fallback answer."}),
        text_models=("gpt2",),
        primary_stream=True,
    )

    assert await collect(chain) == "Fallback answer."


def test_availability() -> None:
    assert FallbackChain(primary=FakePrimary()).available
    assert FallbackChain(secondary=FakeSecondary(), text_models=("gpt2",)).available
    assert not FallbackChain(secondary=FakeSecondary()).available
    assert not FallbackChain().available


def test_attempts_are_tagged_by_tier() -> None:
    chain = FallbackChain(
        primary=FakePrimary(),
        secondary=FakeSecondary(),
        text_models=("gpt2",),
        text2text_models=("google/flan-t5-small",),
    )

    tiers = [(attempt.tier, attempt.model) for attempt in chain.attempts(PROMPT)]

    assert tiers == [(1, "llama"), (2, "gpt2"), (2, "google/flan-t5-small")]


async def test_tier_transition_is_logged(caplog) -> None:
    caplog.set_level(logging.INFO, logger="f1chat.rag.fallback")
    chain = FallbackChain(
        primary=FakePrimary(error=LLMError("401")),
        secondary=FakeSecondary({"distilgpt2": "Alonso."}),
        text_models=("gpt2", "distilgpt2"),
    )

    assert await collect(chain) == "Alonso."

    events = [
        (record.getMessage(), getattr(record, "tier", None))
        for record in caplog.records
        if record.name == "f1chat.rag.fallback"
    ]
    assert [event for event in events if event[0] == "generation_tier"] == [
        ("generation_tier", 1),
        ("generation_tier", 2),
    ]
    assert ("generation_attempt_failed", 1) in events
    assert ("generation_selected", 2) in events
