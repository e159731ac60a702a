"""
Core relay dataclasses.

This module provides the foundational dataclasses for upstream interactions:
- Provider configuration (credential, endpoint, sampling defaults)
- Selectable model catalog entries
- Outbound chat completion requests
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ProviderType(Enum):
    """Supported upstream providers."""
    OPENAI = "openai"
    OPENROUTER = "openrouter"
    GROQ = "groq"


@dataclass(frozen=True)
class ModelOption:
    """A model the user can pick in the front end."""
    id: str
    name: str
    description: str = ""

    @property
    def short_name(self) -> str:
        """Badge label: ``vendor/name:tag`` becomes ``name``."""
        _, _, rest = self.id.partition("/")
        return rest.split(":")[0] or "AI Model"


@dataclass(frozen=True)
class ProviderConfig:
    """
    Process-wide upstream settings.

    Built once at startup from configuration and passed by reference to the
    relay. Holds the credential, so it must never be serialised to clients.
    """
    provider: ProviderType
    base_url: str
    default_model: str
    api_key: str = field(repr=False)

    # Sampling defaults added to every outbound request
    temperature: float = 0.7
    max_tokens: int = 2048
    top_p: float = 0.9

    # Attribution headers
    app_url: str = "http://localhost:3000"
    app_title: str = "Advanced Chatbot App"

    models: tuple[ModelOption, ...] = ()

    def auth_headers(self) -> dict[str, str]:
        """Headers injected into every upstream request."""
        return {
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": self.app_url,
            "X-Title": self.app_title,
            "Content-Type": "application/json",
        }


@dataclass
class ChatCompletionRequest:
    """Outbound chat completion request."""
    model: str
    messages: list[dict[str, Any]]
    stream: bool = False
    temperature: float = 0.7
    max_tokens: int = 2048
    top_p: float = 0.9

    @classmethod
    def from_provider(
        cls,
        provider: ProviderConfig,
        messages: list[dict[str, Any]],
        model: str | None = None,
        stream: bool = False,
    ) -> ChatCompletionRequest:
        return cls(
            model=model or provider.default_model,
            messages=messages,
            stream=stream,
            temperature=provider.temperature,
            max_tokens=provider.max_tokens,
            top_p=provider.top_p,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": self.messages,
            "stream": self.stream,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
        }
