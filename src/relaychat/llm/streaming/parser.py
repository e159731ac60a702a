"""
SSE line parser and chunk accumulation for relayed chat completion streams.
"""

from __future__ import annotations

import codecs
import json
from collections.abc import AsyncGenerator, AsyncIterable
from typing import Any

import httpx

from ..exceptions import StreamingError
from .models import (
    AccumulatorState,
    LineMode,
    RawSSEChunk,
    SSEEventType,
    StreamChunk,
    StreamChunkType,
    StreamingStats,
)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"
EMPTY_RESPONSE_FALLBACK = "Sorry, I could not generate a response."


def extract_delta_content(payload: Any) -> str:
    """Return ``choices[0].delta.content`` or an empty string."""
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    choice = choices[0]
    if not isinstance(choice, dict):
        return ""
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        return ""
    content = delta.get("content")
    return content if isinstance(content, str) else ""


class StreamingParser:
    """
    SSE parser for newline-delimited ``data:`` lines.

    In ``BUFFERED`` mode undecoded bytes and the trailing partial line are
    carried across reads, so a chunk boundary never loses data. ``LENIENT``
    mode decodes and splits every chunk on its own: a line spanning two chunks
    turns into two unparseable halves which are skipped.
    """

    def __init__(self, line_mode: LineMode | str = LineMode.BUFFERED):
        self.line_mode = LineMode(line_mode)
        self.stats = {
            'total_chunks': 0,
            'skipped_lines': 0,
            'done_markers': 0,
        }

    async def parse_sse_stream(
        self, chunks: AsyncIterable[bytes]
    ) -> AsyncGenerator[RawSSEChunk]:
        """
        Parse a relayed byte stream into SSE events.

        Raises:
            StreamingError: If the transport fails while reading.
        """
        try:
            if self.line_mode is LineMode.LENIENT:
                async for chunk in chunks:
                    text = chunk.decode("utf-8", errors="replace")
                    for line in text.split("\n"):
                        event = self.parse_line(line)
                        if event:
                            yield event
                return

            decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
            buffer = ""
            async for chunk in chunks:
                buffer += decoder.decode(chunk)
                *lines, buffer = buffer.split("\n")
                for line in lines:
                    event = self.parse_line(line)
                    if event:
                        yield event

            buffer += decoder.decode(b"", final=True)
            if buffer:
                event = self.parse_line(buffer)
                if event:
                    yield event

        except (httpx.HTTPError, OSError) as e:
            raise StreamingError(f"Stream error: {e}") from e

    def parse_line(self, raw_line: str) -> RawSSEChunk | None:
        """Parse one line; anything other than a ``data:`` line is ignored."""
        line = raw_line.rstrip("\r")
        if not line.startswith(DATA_PREFIX):
            return None

        data_content = line[len(DATA_PREFIX):]

        if data_content == DONE_SENTINEL:
            self.stats['done_markers'] += 1
            return RawSSEChunk(
                event_type=SSEEventType.COMPLETION,
                data=None,
                raw_data=data_content,
            )

        try:
            parsed_data = json.loads(data_content)
        except (ValueError, RecursionError) as e:
            # Malformed, partial or pathologically large fragment
            self.stats['skipped_lines'] += 1
            return RawSSEChunk(
                event_type=SSEEventType.SKIP,
                data=None,
                raw_data=data_content,
                error=f"JSON decode error: {e}",
            )

        self.stats['total_chunks'] += 1
        return RawSSEChunk(
            event_type=SSEEventType.CHUNK,
            data=parsed_data,
            raw_data=data_content,
        )

    def get_stats(self) -> dict[str, int]:
        """Get parser statistics for monitoring."""
        return self.stats.copy()

    def reset_stats(self) -> None:
        self.stats = {
            'total_chunks': 0,
            'skipped_lines': 0,
            'done_markers': 0,
        }


class ChunkAccumulator:
    """Accumulates content fragments for a single response."""

    def __init__(self):
        self.state = AccumulatorState()

    @property
    def transcript(self) -> str:
        return self.state.content_buffer

    def process_chunk(self, raw_chunk: RawSSEChunk) -> StreamChunk | None:
        """
        Fold one SSE event into the running transcript.

        Returns a ``CONTENT`` chunk when text was appended, a ``COMPLETION``
        chunk for the ``[DONE]`` sentinel and ``None`` otherwise.
        """
        self.state.update_timing(raw_chunk.timestamp)

        if raw_chunk.event_type == SSEEventType.SKIP:
            self.state.skipped_chunks += 1
            return None

        if raw_chunk.event_type == SSEEventType.COMPLETION:
            self.state.done_received = True
            return StreamChunk(
                chunk_type=StreamChunkType.COMPLETION,
                content=None,
                accumulated_content=self.state.content_buffer,
            )

        content = extract_delta_content(raw_chunk.data)
        if not content:
            return None

        self.state.content_buffer += content
        self.state.content_chunks += 1
        return StreamChunk(
            chunk_type=StreamChunkType.CONTENT,
            content=content,
            accumulated_content=self.state.content_buffer,
        )

    def finalize(self, fallback: str = EMPTY_RESPONSE_FALLBACK) -> str:
        """Final turn content; an empty transcript becomes ``fallback``."""
        return self.state.content_buffer or fallback

    def get_streaming_stats(self) -> StreamingStats:
        return StreamingStats(
            total_chunks=self.state.chunk_count,
            content_chunks=self.state.content_chunks,
            skipped_chunks=self.state.skipped_chunks,
            done_received=self.state.done_received,
            total_duration=self.state.streaming_duration,
            characters=len(self.state.content_buffer),
        )

    def reset(self) -> None:
        """Reset accumulator state for a new stream."""
        self.state = AccumulatorState()
