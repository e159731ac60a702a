"""
HTTP client for the upstream chat completion provider.

Single attempt per request: no retry, no backoff and no timeout.
"""

from __future__ import annotations

from typing import Any

import httpx

from relaychat.logging_utils import handle_upstream_errors, log_operation

from .exceptions import UpstreamError
from .models import ChatCompletionRequest, ProviderConfig

COMPLETIONS_PATH = "/chat/completions"


class UpstreamClient:
    """Forwards chat completion requests with the provider credential attached."""

    def __init__(
        self,
        provider: ProviderConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.provider = provider
        self.client: httpx.AsyncClient = httpx.AsyncClient(
            base_url=provider.base_url,
            headers=provider.auth_headers(),
            timeout=None,
            transport=transport,
        )

    def build_request(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        stream: bool = False,
    ) -> ChatCompletionRequest:
        return ChatCompletionRequest.from_provider(
            self.provider, messages, model=model, stream=stream
        )

    def _upstream_error(
        self, request: ChatCompletionRequest, status_code: int
    ) -> UpstreamError:
        return UpstreamError(
            f"API request failed: {status_code}",
            provider=self.provider.provider.value,
            model=request.model,
            status_code=status_code,
        )

    @log_operation("upstream_completion")
    @handle_upstream_errors("upstream_completion")
    async def complete(
        self, messages: list[dict[str, Any]], model: str | None = None
    ) -> Any:
        """Send a non-streaming request and return the parsed JSON body."""
        request = self.build_request(messages, model=model, stream=False)
        response = await self.client.post(COMPLETIONS_PATH, json=request.to_payload())
        if not response.is_success:
            raise self._upstream_error(request, response.status_code)
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                "Upstream returned a non-JSON body",
                provider=self.provider.provider.value,
                model=request.model,
                status_code=response.status_code,
            ) from e

    @log_operation("upstream_stream_open")
    @handle_upstream_errors("upstream_stream_open")
    async def open_stream(
        self, messages: list[dict[str, Any]], model: str | None = None
    ) -> httpx.Response:
        """
        Open a streaming request and return the unread response.

        The status is checked before any byte is handed back. The caller owns
        the returned response and must ``aclose()`` it.
        """
        request = self.build_request(messages, model=model, stream=True)
        http_request = self.client.build_request(
            "POST", COMPLETIONS_PATH, json=request.to_payload()
        )
        response = await self.client.send(http_request, stream=True)
        if not response.is_success:
            await response.aread()
            await response.aclose()
            raise self._upstream_error(request, response.status_code)
        return response

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
