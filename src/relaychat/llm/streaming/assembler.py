"""
Stream assembler: relayed event-stream bytes in, live transcript out.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, Callable

import structlog

from .models import LineMode, StreamChunkType
from .parser import EMPTY_RESPONSE_FALLBACK, ChunkAccumulator, StreamingParser

logger = structlog.get_logger(__name__)

TranscriptCallback = Callable[[str], None]


class StreamAssembler:
    """
    Reconstructs a transcript from a relayed chat completion stream.

    The assembler itself is stateless between calls: every ``assemble`` call
    owns a fresh ``ChunkAccumulator`` for its lifetime.
    """

    def __init__(
        self,
        line_mode: LineMode | str = LineMode.BUFFERED,
        fallback_message: str = EMPTY_RESPONSE_FALLBACK,
    ):
        self.line_mode = LineMode(line_mode)
        self.fallback_message = fallback_message

    async def assemble(
        self,
        chunks: AsyncIterable[bytes],
        on_update: TranscriptCallback | None = None,
    ) -> str:
        """
        Consume ``chunks`` and return the final turn content.

        ``on_update`` receives the running transcript after every appended
        fragment. A transport failure propagates as ``StreamingError`` and
        nothing is returned.
        """
        parser = StreamingParser(self.line_mode)
        accumulator = ChunkAccumulator()

        async for raw_chunk in parser.parse_sse_stream(chunks):
            chunk = accumulator.process_chunk(raw_chunk)
            if chunk is None or chunk.chunk_type is not StreamChunkType.CONTENT:
                continue
            if on_update is not None:
                on_update(chunk.accumulated_content)

        stats = accumulator.get_streaming_stats()
        logger.debug(
            "Stream assembled",
            line_mode=self.line_mode.value,
            content_chunks=stats.content_chunks,
            skipped_chunks=stats.skipped_chunks,
            done_received=stats.done_received,
            characters=stats.characters,
        )
        if not stats.content_chunks:
            logger.warning("Stream produced no content, using fallback message")

        return accumulator.finalize(self.fallback_message)
