"""
Streaming support for relayed chat completions.

- SSE line parsing (buffered or lenient across chunk boundaries)
- Fragment accumulation
- Transcript assembly with live updates
"""

from .assembler import StreamAssembler
from .models import LineMode, RawSSEChunk, SSEEventType, StreamChunk, StreamChunkType
from .parser import ChunkAccumulator, StreamingParser, extract_delta_content

__all__ = [
    "ChunkAccumulator",
    "LineMode",
    "RawSSEChunk",
    "SSEEventType",
    "StreamAssembler",
    "StreamChunk",
    "StreamChunkType",
    "StreamingParser",
    "extract_delta_content",
]
