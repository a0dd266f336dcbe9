from __future__ import annotations

from f1chat.rag.prompts import assemble_prompt, base_system_prompt, flatten_prompt
from f1chat.rag.types import Message


def test_system_message_is_first_and_unique() -> None:
    history = [
        Message(role="user", content="Who won in 2021?"),
        Message(role="assistant", content="Max Verstappen."),
        Message(role="user", content="And in 2023?"),
    ]
    prompt = assemble_prompt('["doc"]', "And in 2023?", history)

    roles = [message.role for message in prompt.messages]
    assert roles == ["system", "user", "assistant", "user"]
    assert list(prompt.messages[1:]) == history


def test_system_message_contains_persona_context_and_question() -> None:
    prompt = assemble_prompt('["Verstappen won."]', "Who won?", [Message("user", "Who won?")])
    content = prompt.system.content

    assert content.startswith(base_system_prompt())
    assert 'START CONTEXT\n["Verstappen won."]\nEND CONTEXT' in content
    assert "QUESTION: Who won?" in content


def test_empty_context_keeps_delimiters() -> None:
    prompt = assemble_prompt("", "Who won?", [Message("user", "Who won?")])
    assert "START CONTEXT\n\nEND CONTEXT" in prompt.system.content


def test_non_string_content_is_coerced() -> None:
    prompt = assemble_prompt("", "q", [{"role": "user", "content": [{"type": "text", "text": "q"}]}])
    assert prompt.messages[1].content == '[{"type": "text", "text": "q"}]'


def test_flatten_prompt_ends_with_assistant_cue() -> None:
    prompt = assemble_prompt("", "Who won?", [Message("user", "Who won?")])
    text = flatten_prompt(prompt)
    assert "User: Who won?" in text
    assert text.endswith("Assistant:")
