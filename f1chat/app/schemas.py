from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from f1chat.rag.types import Message, content_to_text


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: Any = ""

    def to_message(self) -> Message:
        return Message(role=self.role, content=content_to_text(self.content))


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(default_factory=list)

    def to_messages(self) -> list[Message]:
        return [message.to_message() for message in self.messages]


class ErrorResponse(BaseModel):
    error: str


class StatsHealthResponse(BaseModel):
    backend: str
    ok: bool
    detail: str | None = None
    collection: str | None = None
