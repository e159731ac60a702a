"""
Upstream LLM integration for the chat relay.

This package provides:
- Provider configuration and request dataclasses
- The upstream HTTP client (``relaychat.llm.client``)
- SSE stream parsing and transcript assembly (``relaychat.llm.streaming``)
- The relay error taxonomy
"""

from __future__ import annotations

from .exceptions import ConfigurationError, RelayError, StreamingError, UpstreamError
from .models import (
    ChatCompletionRequest,
    ModelOption,
    ProviderConfig,
    ProviderType,
)

__all__ = [
    "ChatCompletionRequest",
    # Exceptions
    "ConfigurationError",
    "ModelOption",
    "ProviderConfig",
    "ProviderType",
    "RelayError",
    "StreamingError",
    "UpstreamError",
]
