"""
Error handling for relay operations.

Every failure is scoped to a single in-flight request:
- Upstream failures (non-2xx status or transport error)
- Streaming failures raised while a relayed body is being read
- Configuration problems detected at startup

A malformed streamed fragment is not an error. The parser reports it as a
``SKIP`` event and assembly carries on.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base relay error with context."""

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        model: str = "unknown",
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.status_code = status_code


class UpstreamError(RelayError):
    """Non-2xx status or transport failure from the upstream provider."""
    pass


class StreamingError(UpstreamError):
    """Transport failure while iterating a streamed response."""
    pass


class ConfigurationError(RelayError, ValueError):
    """Missing credential or invalid configuration."""
    pass
