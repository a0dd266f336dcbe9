from __future__ import annotations

"""System instruction and prompt assembly."""

from typing import Any, Iterable

from f1chat.rag.types import AssembledPrompt, Message, content_to_text

_SYSTEM_PROMPT = (
    "You are an AI assistant who knows everything about Formula One. "
    "Use the below context to augment what you know about Formula One racing. "
    "The context will provide you with the most recent page data from wikipedia, "
    "the official F1 website and others. "
    "If the context doesn't include the information you need answer based on your "
    "existing knowledge and don't mention the source of your information or what "
    "the context does or doesn't include. "
    "Format responses using markdown where applicable and don't return images."
)


def base_system_prompt() -> str:
    """Return the fixed persona instruction."""
    return _SYSTEM_PROMPT


def build_system_message(context: str, question: str) -> Message:
    """Combine the persona, the delimited context and the restated question."""
    content = (
        f"{_SYSTEM_PROMPT}\n"
        "---------\n"
        "START CONTEXT\n"
        f"{context}\n"
        "END CONTEXT\n"
        "---------\n"
        f"QUESTION: {question}\n"
        "---------\n"
    )
    return Message(role="system", content=content)


def assemble_prompt(
    context: str,
    question: str,
    messages: Iterable[Message | dict[str, Any]],
) -> AssembledPrompt:
    """Prepend one system message to the unchanged conversation."""
    conversation: list[Message] = []
    for item in messages:
        if isinstance(item, Message):
            role, content = item.role, item.content
        else:
            role, content = str(item.get("role", "user")), item.get("content", "")
        conversation.append(Message(role=role, content=content_to_text(content)))
    return AssembledPrompt(
        messages=(build_system_message(context, question), *conversation),
        question=question,
    )


def flatten_prompt(prompt: AssembledPrompt) -> str:
    """Render a prompt as plain text for text-generation models."""
    lines = [prompt.system.content.strip(), ""]
    for message in prompt.messages[1:]:
        content = message.content.strip()
        if not content:
            continue
        lines.append(f"{message.role.capitalize()}: {content}")
    lines.append("Assistant:")
    return "\n".join(lines)
