from __future__ import annotations

"""Text-delta framing for the streaming chat response.

Each frame is one line of the form ``0:"<escaped text>"`` followed by a
newline. The ``0:`` prefix marks an incremental text delta and is kept
verbatim for compatibility with data-stream chat clients.
"""

import json
from contextlib import aclosing
from typing import AsyncGenerator, AsyncIterator, Iterator

TEXT_DELTA_PREFIX = "0:"
DEFAULT_CHUNK_SIZE = 40


class FrameDecodeError(ValueError):
    """Raised when a line is not a well-formed text-delta frame."""
    pass


def escape_text(text: str) -> str:
    """Escape a delta as a JSON string literal (quotes and newlines included)."""
    return json.dumps(text, ensure_ascii=False)


def encode_frame(text: str) -> str:
    """Wrap one delta in the text-delta envelope."""
    return f"{TEXT_DELTA_PREFIX}{escape_text(text)}\n"


def decode_frame(line: str) -> str:
    """Return the unescaped delta carried by a single frame line."""
    body = line.rstrip("\n")
    if not body.startswith(TEXT_DELTA_PREFIX):
        raise FrameDecodeError("Frame is missing the text-delta prefix")
    try:
        value = json.loads(body[len(TEXT_DELTA_PREFIX):])
    except json.JSONDecodeError as exc:
        raise FrameDecodeError("Frame payload is not a string literal") from exc
    if not isinstance(value, str):
        raise FrameDecodeError("Frame payload is not a string literal")
    return value


def decode_stream(body: str) -> str:
    """Reconstruct the full text from a concatenation of frames."""
    return "".join(decode_frame(line) for line in body.split("\n") if line)


def chunk_text(text: str, size: int = DEFAULT_CHUNK_SIZE) -> Iterator[str]:
    """Split text into fixed-size slices, left to right."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(text), size):
        yield text[start:start + size]


async def rechunk(text: str, size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[str]:
    """Expose a one-shot answer as a lazy sequence of deltas."""
    for piece in chunk_text(text, size):
        yield piece


async def frame_deltas(deltas: AsyncGenerator[str, None]) -> AsyncIterator[str]:
    """Frame each non-empty delta in arrival order, closing the source when done."""
    async with aclosing(deltas) as source:
        async for delta in source:
            if delta:
                yield encode_frame(delta)
