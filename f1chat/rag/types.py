from __future__ import annotations

"""Core data types for chat messages, retrieval and prompts."""

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Message:
    """Role-tagged chat message in chronological order."""
    role: str
    content: str

    def as_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class ContextDocument:
    """Document returned by a similarity search, closest first."""
    text: str
    score: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AssembledPrompt:
    """Provider-ready messages: one system message followed by the conversation."""
    messages: tuple[Message, ...]
    question: str

    @property
    def system(self) -> Message:
        return self.messages[0]

    def as_dicts(self) -> list[dict[str, str]]:
        return [message.as_dict() for message in self.messages]


def content_to_text(content: Any) -> str:
    """Coerce message content into a string representation.

    Missing or empty structured content becomes "" so it reads as no question.
    """
    if content is None:
        return ""
    if isinstance(content, (list, dict)) and not content:
        return ""
    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False)
