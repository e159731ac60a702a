"""
Relay HTTP server.

Receives ``{messages, model?, stream?}`` from the local front end, attaches
the provider credential and forwards a single request upstream. Streamed
bodies are piped back byte for byte; the relay never parses them.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
from fastapi import FastAPI
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from relaychat.llm.client import UpstreamClient
from relaychat.llm.models import ProviderConfig
from relaychat.logging_utils import RelayErrorHandler

logger = structlog.get_logger(__name__)

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


async def pipe_upstream(response: httpx.Response) -> AsyncIterator[bytes]:
    """Relay raw upstream bytes; the upstream response is closed on every exit."""
    try:
        async for chunk in response.aiter_bytes():
            yield chunk
    finally:
        await response.aclose()


class ChatMessageIn(BaseModel):
    """One ``{role, content}`` pair. Extra keys are forwarded untouched."""
    model_config = ConfigDict(extra="allow")

    role: str
    content: str


class ChatRequest(BaseModel):
    messages: list[ChatMessageIn]
    model: str | None = None
    stream: bool = False


class ModelInfo(BaseModel):
    id: str
    name: str
    description: str = ""


class ModelsResponse(BaseModel):
    default_model: str
    models: list[ModelInfo] = Field(default_factory=list)


def create_app(
    provider: ProviderConfig,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    Build the relay application.

    Args:
        provider: Immutable upstream settings, credential included
        transport: Optional httpx transport for the upstream client

    Returns:
        FastAPI application with the upstream client on ``app.state``
    """
    upstream = UpstreamClient(provider, transport=transport)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "Relay started",
            provider=provider.provider.value,
            base_url=provider.base_url,
            default_model=provider.default_model,
        )
        try:
            yield
        finally:
            await upstream.close()
            logger.info("Relay stopped")

    app = FastAPI(title="relaychat relay", lifespan=lifespan)
    app.state.upstream = upstream

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/models", response_model=ModelsResponse)
    async def list_models() -> ModelsResponse:
        return ModelsResponse(
            default_model=provider.default_model,
            models=[
                ModelInfo(id=m.id, name=m.name, description=m.description)
                for m in provider.models
            ],
        )

    @app.post("/api/chat")
    async def relay_chat(body: ChatRequest):
        model = body.model or provider.default_model
        messages: list[dict[str, Any]] = [m.model_dump() for m in body.messages]
        request_log = logger.bind(
            model=model, stream=body.stream, message_count=len(messages)
        )
        request_log.info("Relaying chat request")

        try:
            if body.stream:
                response = await upstream.open_stream(messages, model)
                return StreamingResponse(
                    pipe_upstream(response),
                    status_code=response.status_code,
                    media_type="text/event-stream",
                    headers=STREAM_HEADERS,
                )

            data = await upstream.complete(messages, model)
            return JSONResponse(data)

        except Exception as e:
            status, payload = RelayErrorHandler.create_error_payload(
                e, "relay_chat", {"model": model, "stream": body.stream}
            )
            return JSONResponse(payload, status_code=status)

    return app
