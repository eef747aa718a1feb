"""Incremental decoder for the provider's Server-Sent-Events stream.

Wire format (relayed unchanged from the provider):

    data: {"choices":[{"delta":{"content":"Hel"}}]}

    data: {"choices":[{"delta":{"content":"lo"}}]}

    : keep-alive comment

    data: [DONE]

Chunks arrive with no alignment to lines, events or even UTF-8 characters.
SSEDecoder keeps one text buffer across chunks, decodes bytes with an
incremental UTF-8 decoder, and only ever parses complete lines.

A complete ``data:`` line whose JSON does not parse is treated as not yet
complete: it goes back to the head of the buffer and processing waits for
the next chunk. If the line still fails once more bytes have arrived it is
dropped with a warning, so a malformed line can never stall the stream.
"""

from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterable, AsyncIterator, Optional
import codecs
import json
import logging

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class FrameKind(str, Enum):
    DELTA = "delta"
    END = "end"


class StreamOutcome(str, Enum):
    """How a stream terminated.

    DONE:      the ``[DONE]`` sentinel was received
    EOF:       the transport closed cleanly without the sentinel
    TRUNCATED: the transport closed with a partial, unterminated line
               (or an unparsed line) still buffered, i.e. mid-event
    """

    DONE = "done"
    EOF = "eof"
    TRUNCATED = "truncated"


@dataclass(frozen=True)
class StreamFrame:
    """One decoded provider event: a text delta or the end marker."""

    kind: FrameKind
    text: str = ""
    outcome: Optional[StreamOutcome] = None

    @classmethod
    def delta(cls, text: str) -> "StreamFrame":
        return cls(kind=FrameKind.DELTA, text=text)

    @classmethod
    def end(cls, outcome: StreamOutcome) -> "StreamFrame":
        return cls(kind=FrameKind.END, outcome=outcome)

    @property
    def is_delta(self) -> bool:
        return self.kind == FrameKind.DELTA


def extract_delta_text(event: object) -> Optional[str]:
    """Return ``choices[0].delta.content`` from a parsed event, if present."""
    if not isinstance(event, dict):
        return None
    choices = event.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None


class SSEDecoder:
    """Stateful line decoder; one instance per stream.

    Usage:
        decoder = SSEDecoder()
        for chunk in chunks:
            for frame in decoder.feed(chunk):
                ...
        *last_deltas, end_frame = decoder.finish()
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        # Set when a line was pushed back and is awaiting its single retry
        self._retry_pending = False
        self._done = False
        self._finished = False

    @property
    def done(self) -> bool:
        """True once the ``[DONE]`` sentinel has been seen."""
        return self._done

    @property
    def buffered(self) -> str:
        """Text received but not yet consumed as complete lines."""
        return self._buffer

    def feed(self, chunk: bytes) -> list[StreamFrame]:
        """Consume one chunk and return the deltas it completed, in order."""
        if self._done or self._finished:
            return []

        self._buffer += self._decoder.decode(chunk)
        return self._drain_lines(more_expected=True)

    def finish(self) -> list[StreamFrame]:
        """Signal end of transport; return remaining deltas plus the end marker.

        Complete lines still buffered behind a pushed-back line are processed
        without pushback. Any unterminated tail cannot be a complete event
        and is discarded; a non-blank tail yields TRUNCATED.
        """
        if self._finished:
            raise RuntimeError("finish() called twice on the same SSEDecoder")
        self._finished = True

        frames: list[StreamFrame] = []
        if not self._done:
            self._buffer += self._decoder.decode(b"", final=True)
            frames = self._drain_lines(more_expected=False)

        if self._done:
            self._buffer = ""
            frames.append(StreamFrame.end(StreamOutcome.DONE))
            return frames

        tail = self._buffer
        self._buffer = ""
        if tail.strip():
            logger.warning(f"Stream ended mid-event; discarding {len(tail)} buffered characters")
            frames.append(StreamFrame.end(StreamOutcome.TRUNCATED))
        else:
            frames.append(StreamFrame.end(StreamOutcome.EOF))
        return frames

    def _drain_lines(self, more_expected: bool) -> list[StreamFrame]:
        frames: list[StreamFrame] = []

        while True:
            newline_index = self._buffer.find("\n")
            if newline_index == -1:
                break

            line = self._buffer[:newline_index]
            self._buffer = self._buffer[newline_index + 1:]

            if line.endswith("\r"):
                line = line[:-1]
            if line.startswith(":") or line.strip() == "":
                continue
            if not line.startswith(DATA_PREFIX):
                continue

            payload = line[len(DATA_PREFIX):].strip()
            if payload == DONE_SENTINEL:
                self._done = True
                break

            try:
                event = json.loads(payload)
            except json.JSONDecodeError:
                if more_expected and not self._retry_pending:
                    # Treat as incomplete: re-merge at the head and wait for bytes
                    self._buffer = line + "\n" + self._buffer
                    self._retry_pending = True
                    break
                logger.warning(f"Dropping malformed SSE line ({len(line)} chars)")
                self._retry_pending = False
                continue

            self._retry_pending = False
            text = extract_delta_text(event)
            if text:
                frames.append(StreamFrame.delta(text))

        return frames


async def decode_stream(chunks: AsyncIterable[bytes]) -> AsyncIterator[StreamFrame]:
    """Lazily decode a byte stream into deltas followed by one end marker.

    Each call uses a fresh decoder. Reading stops as soon as ``[DONE]`` is
    seen; closing the transport is left to its owner. Errors raised by
    ``chunks`` propagate unchanged.

    Yields:
        StreamFrame: DELTA frames in arrival order, then exactly one END frame
    """
    decoder = SSEDecoder()
    async for chunk in chunks:
        for frame in decoder.feed(chunk):
            yield frame
        if decoder.done:
            break
    for frame in decoder.finish():
        yield frame
