from __future__ import annotations

"""Generation providers: OpenAI-compatible chat and Hugging Face text models."""

from dataclasses import dataclass
import json
import logging
from typing import Any, AsyncIterator

import httpx

logger = logging.getLogger(__name__)

TEXT_GENERATION = "text-generation"
TEXT2TEXT_GENERATION = "text2text-generation"


class LLMError(RuntimeError):
    """Raised when LLM requests fail or responses are invalid."""
    pass


@dataclass(frozen=True)
class OpenAIChatProvider:
    """Chat-completions provider for any OpenAI-compatible endpoint (Groq by default)."""
    api_key: str
    base_url: str
    model: str
    temperature: float
    max_tokens: int
    timeout: float
    name: str = "groq"
    client: httpx.AsyncClient | None = None

    def _payload(self, messages: list[dict[str, str]], stream: bool) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": stream,
        }

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    @property
    def _url(self) -> str:
        return f"{self.base_url.rstrip('/')}/chat/completions"

    async def complete(self, messages: list[dict[str, str]]) -> str:
        """Request a single non-streaming completion and return its text."""
        client = self.client
        owns_client = client is None
        if owns_client:
            client = httpx.AsyncClient(timeout=self.timeout)
        try:
            response = await client.post(
                self._url,
                json=self._payload(messages, stream=False),
                headers=self._headers,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise LLMError(str(exc)) from exc
        except ValueError as exc:
            raise LLMError("Invalid chat completion body") from exc
        finally:
            if owns_client and client is not None:
                await client.aclose()

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            raise LLMError("Invalid chat completion response")
        message = choices[0].get("message") or {}
        content = message.get("content")
        if not isinstance(content, str):
            raise LLMError("Invalid chat completion content")
        return content

    async def stream(self, messages: list[dict[str, str]]) -> AsyncIterator[str]:
        """Yield content deltas from a server-sent-event completion stream."""
        client = self.client
        owns_client = client is None
        if owns_client:
            client = httpx.AsyncClient(timeout=self.timeout)
        try:
            async with client.stream(
                "POST",
                self._url,
                json=self._payload(messages, stream=True),
                headers=self._headers,
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise LLMError(f"Chat completion stream failed: {response.status_code}")
                async for line in response.aiter_lines():
                    data = parse_sse_data(line)
                    if data is None:
                        continue
                    if data == "[DONE]":
                        return
                    delta = _extract_delta(data)
                    if delta:
                        yield delta
        except httpx.HTTPError as exc:
            raise LLMError(str(exc)) from exc
        finally:
            if owns_client and client is not None:
                await client.aclose()


def parse_sse_data(line: str) -> str | None:
    """Return the payload of a ``data:`` line, or None for any other line."""
    if not line.startswith("data:"):
        return None
    return line[len("data:"):].strip()


def _extract_delta(data: str) -> str | None:
    """Pull ``choices[0].delta.content`` out of one stream event."""
    try:
        parsed = json.loads(data)
    except json.JSONDecodeError:
        logger.debug("sse_line_skipped")
        return None
    if not isinstance(parsed, dict):
        return None
    choices = parsed.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta") or {}
    content = delta.get("content") if isinstance(delta, dict) else None
    return content if isinstance(content, str) else None


@dataclass(frozen=True)
class HuggingFaceTextProvider:
    """Text-generation and text-to-text models served by Hugging Face inference."""
    base_url: str
    token: str | None
    max_new_tokens: int
    timeout: float
    name: str = "huggingface"
    client: httpx.AsyncClient | None = None

    def _parameters(self, task: str) -> dict[str, Any]:
        if task == TEXT_GENERATION:
            return {"max_new_tokens": self.max_new_tokens, "return_full_text": False}
        return {"max_new_tokens": self.max_new_tokens}

    async def generate(self, model: str, task: str, prompt: str) -> str:
        """Run one model and return its generated text."""
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        payload = {"inputs": prompt, "parameters": self._parameters(task)}
        client = self.client
        owns_client = client is None
        if owns_client:
            client = httpx.AsyncClient(timeout=self.timeout)
        try:
            response = await client.post(
                f"{self.base_url.rstrip('/')}/models/{model}",
                json=payload,
                headers=headers,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise LLMError(str(exc)) from exc
        except ValueError as exc:
            raise LLMError("Invalid text generation body") from exc
        finally:
            if owns_client and client is not None:
                await client.aclose()

        if isinstance(data, list):
            data = data[0] if data else {}
        if not isinstance(data, dict):
            raise LLMError("Invalid text generation response")
        if "error" in data:
            raise LLMError(f"Text generation failed: {data['error']}")
        text = data.get("generated_text")
        if not isinstance(text, str):
            raise LLMError("Invalid text generation content")
        if task == TEXT_GENERATION and text.startswith(prompt):
            text = text[len(prompt):]
        return text.strip()
