#!/usr/bin/env python3
"""
Tests for SSE parsing, fragment accumulation and transcript assembly.
"""

import pytest

from conftest import byte_stream, sse_body, sse_line
from relaychat.llm.exceptions import StreamingError, UpstreamError
from relaychat.llm.streaming import (
    ChunkAccumulator,
    LineMode,
    SSEEventType,
    StreamAssembler,
    StreamChunkType,
    StreamingParser,
    extract_delta_content,
)
from relaychat.llm.streaming.models import RawSSEChunk

HELLO_CHUNKS = [
    'data: {"choices":[{"delta":{"content":"Hel"}}]}\n',
    'data: {"choices":[{"delta":{"content":"lo"}}]}\n',
    "data: [DONE]\n",
]


async def failing_source(chunks):
    for chunk in chunks:
        yield chunk.encode()
    raise ConnectionResetError("peer reset")


class TestStreamAssembler:
    """End-to-end assembly over byte sources."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("line_mode", ["buffered", "lenient"])
    async def test_fragments_concatenate(self, line_mode):
        updates = []
        assembler = StreamAssembler(line_mode=line_mode)

        result = await assembler.assemble(byte_stream(HELLO_CHUNKS), updates.append)

        assert result == "Hello"
        assert updates == ["Hel", "Hello"]

    @pytest.mark.asyncio
    async def test_malformed_line_is_skipped(self):
        updates = []
        chunks = [sse_line("A"), "data: not-json\n", sse_line("B"), "data: [DONE]\n"]

        result = await StreamAssembler().assemble(byte_stream(chunks), updates.append)

        assert result == "AB"
        assert updates == ["A", "AB"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "bad_line",
        [
            "data: " + "1" * 5000 + "\n",  # past the int conversion limit
            "data: " + "[" * 100000 + "\n",  # nesting past the recursion limit
        ],
        ids=["huge_integer", "deep_nesting"],
    )
    async def test_unparseable_payload_is_skipped(self, bad_line):
        chunks = [sse_line("A"), bad_line, sse_line("B"), "data: [DONE]\n"]

        result = await StreamAssembler().assemble(byte_stream(chunks))

        assert result == "AB"

    @pytest.mark.asyncio
    async def test_empty_stream_uses_fallback(self):
        result = await StreamAssembler().assemble(byte_stream([]))
        assert result == "Sorry, I could not generate a response."

    @pytest.mark.asyncio
    async def test_only_sentinel_and_junk_uses_fallback(self):
        chunks = ["data: not-json\n", ": keep-alive\n", "data: [DONE]\n"]
        result = await StreamAssembler(fallback_message="nothing").assemble(
            byte_stream(chunks)
        )
        assert result == "nothing"

    @pytest.mark.asyncio
    async def test_empty_and_missing_content_not_emitted(self):
        updates = []
        chunks = [
            'data: {"choices":[{"delta":{"role":"assistant"}}]}\n',
            'data: {"choices":[{"delta":{"content":""}}]}\n',
            'data: {"choices":[]}\n',
            sse_line("ok"),
        ]

        result = await StreamAssembler().assemble(byte_stream(chunks), updates.append)

        assert result == "ok"
        assert updates == ["ok"]

    @pytest.mark.asyncio
    async def test_whole_body_in_one_chunk(self):
        result = await StreamAssembler().assemble(
            byte_stream([sse_body("The ", "quick ", "fox")])
        )
        assert result == "The quick fox"

    @pytest.mark.asyncio
    async def test_buffered_mode_keeps_line_split_across_chunks(self):
        line = sse_line("split")
        chunks = [line[:20], line[20:], "data: [DONE]\n"]

        result = await StreamAssembler(line_mode=LineMode.BUFFERED).assemble(
            byte_stream(chunks)
        )

        assert result == "split"

    @pytest.mark.asyncio
    async def test_lenient_mode_loses_line_split_across_chunks(self):
        line = sse_line("split")
        chunks = [sse_line("kept "), line[:20], line[20:], "data: [DONE]\n"]

        result = await StreamAssembler(line_mode=LineMode.LENIENT).assemble(
            byte_stream(chunks)
        )

        assert result == "kept "

    @pytest.mark.asyncio
    async def test_buffered_mode_keeps_multibyte_character_split(self):
        encoded = 'data: {"choices":[{"delta":{"content":"héllo ☃"}}]}\n'.encode()
        cut = encoded.index("☃".encode()) + 1  # inside the snowman

        result = await StreamAssembler().assemble(
            byte_stream([encoded[:cut], encoded[cut:]])
        )

        assert result == "héllo ☃"

    @pytest.mark.asyncio
    async def test_final_line_without_newline(self):
        result = await StreamAssembler().assemble(
            byte_stream([sse_line("tail").rstrip("\n")])
        )
        assert result == "tail"

    @pytest.mark.asyncio
    async def test_crlf_framing(self):
        chunks = [sse_line("a").replace("\n", "\r\n"), "data: [DONE]\r\n"]
        result = await StreamAssembler().assemble(byte_stream(chunks))
        assert result == "a"

    @pytest.mark.asyncio
    async def test_transport_failure_raises_streaming_error(self):
        updates = []
        with pytest.raises(StreamingError) as exc_info:
            await StreamAssembler().assemble(
                failing_source([sse_line("partial")]), updates.append
            )

        assert isinstance(exc_info.value, UpstreamError)
        assert updates == ["partial"]

    @pytest.mark.asyncio
    async def test_each_call_owns_its_accumulator(self):
        assembler = StreamAssembler()
        first = await assembler.assemble(byte_stream([sse_body("one")]))
        second = await assembler.assemble(byte_stream([sse_body("two")]))
        assert (first, second) == ("one", "two")


class TestStreamingParser:
    """Line-level parsing."""

    def test_done_sentinel(self):
        parser = StreamingParser()
        event = parser.parse_line("data: [DONE]")
        assert event.event_type == SSEEventType.COMPLETION
        assert parser.get_stats()["done_markers"] == 1

    def test_invalid_json_is_skip_event(self):
        parser = StreamingParser()
        event = parser.parse_line("data: not-json")
        assert event.event_type == SSEEventType.SKIP
        assert event.raw_data == "not-json"
        assert parser.get_stats()["skipped_lines"] == 1

    def test_non_data_lines_ignored(self):
        parser = StreamingParser()
        assert parser.parse_line("") is None
        assert parser.parse_line(": OPENROUTER PROCESSING") is None
        assert parser.parse_line("event: message") is None
        assert parser.parse_line("data:{}") is None  # prefix requires a space

    def test_json_chunk(self):
        parser = StreamingParser()
        event = parser.parse_line(sse_line("x").rstrip("\n"))
        assert event.event_type == SSEEventType.CHUNK
        assert event.data["choices"][0]["delta"]["content"] == "x"
        assert parser.get_stats()["total_chunks"] == 1

    def test_reset_stats(self):
        parser = StreamingParser()
        parser.parse_line("data: nope")
        parser.reset_stats()
        assert parser.get_stats() == {
            "total_chunks": 0, "skipped_lines": 0, "done_markers": 0
        }

    def test_line_mode_accepts_strings(self):
        assert StreamingParser("lenient").line_mode is LineMode.LENIENT
        with pytest.raises(ValueError):
            StreamingParser("sloppy")


class TestChunkAccumulator:
    """Accumulation and finalisation."""

    def test_accumulates_and_reports_stats(self):
        accumulator = ChunkAccumulator()
        for data in ({"choices": [{"delta": {"content": "Hi"}}]},
                     {"choices": [{"delta": {"content": "!"}}]}):
            chunk = accumulator.process_chunk(
                RawSSEChunk(event_type=SSEEventType.CHUNK, data=data, raw_data="")
            )
            assert chunk.chunk_type == StreamChunkType.CONTENT

        accumulator.process_chunk(
            RawSSEChunk(event_type=SSEEventType.SKIP, data=None, raw_data="x")
        )
        done = accumulator.process_chunk(
            RawSSEChunk(event_type=SSEEventType.COMPLETION, data=None, raw_data="[DONE]")
        )

        assert done.chunk_type == StreamChunkType.COMPLETION
        assert accumulator.transcript == "Hi!"
        stats = accumulator.get_streaming_stats()
        assert stats.content_chunks == 2
        assert stats.skipped_chunks == 1
        assert stats.total_chunks == 4
        assert stats.done_received is True
        assert stats.characters == 3

    def test_finalize_fallback_and_reset(self):
        accumulator = ChunkAccumulator()
        assert accumulator.finalize("fallback") == "fallback"
        accumulator.state.content_buffer = "text"
        assert accumulator.finalize("fallback") == "text"
        accumulator.reset()
        assert accumulator.transcript == ""


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({"choices": [{"delta": {"content": "x"}}]}, "x"),
        ({"choices": [{"delta": {}}]}, ""),
        ({"choices": [{"delta": {"content": None}}]}, ""),
        ({"choices": [{"delta": {"content": 5}}]}, ""),
        ({"choices": []}, ""),
        ({"choices": "nope"}, ""),
        ({}, ""),
        ([1, 2], ""),
        ("string", ""),
    ],
)
def test_extract_delta_content(payload, expected):
    assert extract_delta_content(payload) == expected
