"""Shared fixtures and helpers for the relay tests."""

import json
from collections.abc import AsyncIterator, Callable

import httpx
import pytest

from relaychat.chat_service import ChatService
from relaychat.history.chat_store import ChatState
from relaychat.llm.models import ModelOption, ProviderConfig, ProviderType
from relaychat.llm.streaming import StreamAssembler

UPSTREAM_BASE_URL = "https://upstream.test/api/v1"
RELAY_BASE_URL = "http://relay.test"
DEFAULT_MODEL = "deepseek/deepseek-r1-0528-qwen3-8b:free"


def sse_line(content: str) -> str:
    """One ``data:`` line carrying a content delta."""
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]}) + "\n"


def sse_body(*fragments: str, done: bool = True) -> bytes:
    body = "".join(sse_line(fragment) + "\n" for fragment in fragments)
    if done:
        body += "data: [DONE]\n\n"
    return body.encode()


async def byte_stream(chunks: list[str | bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk.encode() if isinstance(chunk, str) else chunk


class FailingStream(httpx.AsyncByteStream):
    """Yields the given chunks, then fails like a dropped connection."""

    def __init__(self, chunks: list[bytes]):
        self.chunks = chunks

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        raise httpx.ReadError("connection dropped")


@pytest.fixture
def provider() -> ProviderConfig:
    return ProviderConfig(
        provider=ProviderType.OPENROUTER,
        base_url=UPSTREAM_BASE_URL,
        default_model=DEFAULT_MODEL,
        api_key="sk-test-key",
        app_url="http://localhost:3000",
        app_title="Advanced Chatbot App",
        models=(
            ModelOption(DEFAULT_MODEL, "DeepSeek R1 (Free)", "Fast and efficient"),
            ModelOption(
                "google/gemma-2-9b-it:free", "Gemma 2 9B (Free)", "Google's latest"
            ),
        ),
    )


@pytest.fixture
def make_service() -> Callable[..., ChatService]:
    """Build a ChatService whose relay is answered by ``handler``."""

    def factory(handler, updates=None, notices=None) -> ChatService:
        http_client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler), base_url=RELAY_BASE_URL
        )
        service = ChatService(
            ChatService.ChatServiceConfig(
                http_client=http_client,
                state=ChatState(selected_model=DEFAULT_MODEL),
                assembler=StreamAssembler(),
                on_update=updates.append if updates is not None else None,
                on_notify=(
                    (lambda *args: notices.append(args))
                    if notices is not None else None
                ),
            )
        )
        service.ensure_conversation()
        return service

    return factory
