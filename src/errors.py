"""
Error taxonomy for the chat core.

Configuration problems surface at client creation, remote failures surface
as ProviderRequestError and structured replies that do not fit the requested
shape surface as DeserializationError. Nothing here is retried.
"""

from __future__ import annotations


class LLMChatError(Exception):
    """Base class for all chat core errors."""


class ConfigurationError(LLMChatError, ValueError):
    """Missing or invalid provider settings."""


class ProviderRequestError(LLMChatError):
    """The remote completion call failed or returned an unusable response."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        model: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.model = model


class DeserializationError(LLMChatError, ValueError):
    """A structured reply could not be parsed into the requested shape."""

    def __init__(self, message: str, *, raw_text: str | None = None) -> None:
        super().__init__(message)
        self.raw_text = raw_text
