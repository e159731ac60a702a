"""
Streaming-specific dataclasses for the stream assembler.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class LineMode(Enum):
    """How decoded text is split into lines across chunk boundaries."""
    BUFFERED = "buffered"
    LENIENT = "lenient"


class StreamChunkType(Enum):
    """Types of processed streaming chunks."""
    CONTENT = "content"
    COMPLETION = "completion"


class SSEEventType(Enum):
    """Server-Sent Event line kinds."""
    CHUNK = "chunk"
    COMPLETION = "completion"
    SKIP = "skip"


@dataclass(frozen=True)
class RawSSEChunk:
    """One recognised ``data:`` line from the relayed body."""
    event_type: SSEEventType
    data: Any
    raw_data: str
    error: str | None = None
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class StreamChunk:
    """Processed streaming chunk with accumulated state."""
    chunk_type: StreamChunkType
    content: str | None
    accumulated_content: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class AccumulatorState:
    """Mutable state owned by one in-flight response."""
    content_buffer: str = ""
    chunk_count: int = 0
    content_chunks: int = 0
    skipped_chunks: int = 0
    done_received: bool = False
    first_chunk_time: float | None = None
    last_chunk_time: float | None = None

    def update_timing(self, timestamp: float) -> None:
        """Update timing information for latency tracking."""
        if self.first_chunk_time is None:
            self.first_chunk_time = timestamp
        self.last_chunk_time = timestamp
        self.chunk_count += 1

    @property
    def streaming_duration(self) -> float:
        """Calculate total streaming duration."""
        if self.first_chunk_time is None or self.last_chunk_time is None:
            return 0.0
        return self.last_chunk_time - self.first_chunk_time


@dataclass(frozen=True)
class StreamingStats:
    """Statistics for one assembled response."""
    total_chunks: int
    content_chunks: int
    skipped_chunks: int
    done_received: bool
    total_duration: float
    characters: int
