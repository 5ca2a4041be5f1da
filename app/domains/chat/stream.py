"""Incremental decoder for streamed chat-completion responses.

The gateway answers with server-sent events: newline-delimited ``data: <json>``
frames terminated by ``data: [DONE]``. Chunks from the transport carry no
alignment guarantee, so the decoder keeps a carry-over buffer between feeds
and only ever looks at complete lines.
"""

import asyncio
import codecs
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"
DEFAULT_MAX_LINE_LENGTH = 1_048_576


def extract_delta(frame: Any) -> str | None:
    """Return ``choices[0].delta.content`` from a decoded frame, if present."""
    if not isinstance(frame, dict):
        return None
    choices = frame.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


class StreamDecoder:
    """Turns raw byte chunks into text deltas, one ``feed`` call per chunk.

    Only newline-terminated lines are parsed. A ``data:`` line that fails to
    parse is dropped as malformed and decoding moves on to the next line.
    An unterminated line longer than ``max_line_length`` is discarded up to
    its newline.
    """

    def __init__(self, max_line_length: int = DEFAULT_MAX_LINE_LENGTH):
        self.max_line_length = max_line_length
        self.done = False
        self.malformed_frames = 0
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._skipping = False

    def feed(self, chunk: bytes) -> list[str]:
        """Consume one transport chunk and return the deltas it completed."""
        if self.done:
            return []
        self._append(self._decoder.decode(chunk))
        return self._drain()

    def finish(self) -> list[str]:
        """Signal end of input and return any deltas from the trailing line."""
        if self.done:
            return []
        self._append(self._decoder.decode(b"", final=True))
        if self._buffer and not self._skipping:
            self._buffer += "\n"
        deltas = self._drain()
        self._buffer = ""
        return deltas

    def _append(self, text: str) -> None:
        if self._skipping:
            newline = text.find("\n")
            if newline == -1:
                return
            text = text[newline + 1:]
            self._skipping = False
        self._buffer += text

    def _drain(self) -> list[str]:
        deltas: list[str] = []

        while not self.done:
            newline = self._buffer.find("\n")
            if newline == -1:
                break

            line = self._buffer[:newline]
            self._buffer = self._buffer[newline + 1:]

            if line.endswith("\r"):
                line = line[:-1]
            if line.startswith(":") or line.strip() == "":
                continue
            if not line.startswith(DATA_PREFIX):
                continue

            payload = line[len(DATA_PREFIX):].strip()
            if payload == DONE_SENTINEL:
                self.done = True
                self._buffer = ""
                break

            try:
                frame = json.loads(payload)
            except ValueError:
                # A terminated line cannot change with later chunks
                self._drop(line)
                continue

            delta = extract_delta(frame)
            if delta:
                deltas.append(delta)

        if not self.done and "\n" not in self._buffer and len(self._buffer) > self.max_line_length:
            logger.warning(
                f"Discarding unterminated stream line of {len(self._buffer)} characters"
            )
            self.malformed_frames += 1
            self._buffer = ""
            self._skipping = True

        return deltas

    def _drop(self, line: str) -> None:
        self.malformed_frames += 1
        logger.warning(f"Dropping malformed stream frame: {line[:200]!r}")


async def iter_deltas(
    chunks: AsyncIterator[bytes],
    *,
    max_line_length: int = DEFAULT_MAX_LINE_LENGTH,
    cancel_event: asyncio.Event | None = None,
) -> AsyncIterator[str]:
    """Yield text deltas from an async byte stream, in stream order.

    Stops at the ``[DONE]`` sentinel, at end of input, or at the first chunk
    boundary after ``cancel_event`` is set.
    """
    decoder = StreamDecoder(max_line_length)

    async for chunk in chunks:
        if cancel_event is not None and cancel_event.is_set():
            return
        for delta in decoder.feed(chunk):
            yield delta
        if decoder.done:
            return

    if cancel_event is not None and cancel_event.is_set():
        return
    for delta in decoder.finish():
        yield delta
