from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from f1chat.rag.types import Message

NO_USER_MESSAGE = "No user message provided."
FALLBACK_APOLOGY = "I'm sorry, I couldn't generate a response right now. Please try again."


@dataclass(frozen=True)
class GuardrailResult:
    allowed: bool
    reason: str


def require_question(messages: Sequence[Message]) -> GuardrailResult:
    if not messages:
        return GuardrailResult(allowed=False, reason="empty_messages")
    if not messages[-1].content.strip():
        return GuardrailResult(allowed=False, reason="empty_question")
    return GuardrailResult(allowed=True, reason="ok")
