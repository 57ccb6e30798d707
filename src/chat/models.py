"""
Chat Data Models

Data structures for the chat core: provider settings, conversation messages,
LLM API message types and the normalized completion result.
All strongly typed with Pydantic for validation and type safety.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_AZURE_API_VERSION = "2024-10-21"


# ==============================================================================
# CONFIGURATION MODELS
# ==============================================================================


class ProviderKind(str, Enum):
    """Closed set of supported API dialects."""

    MANAGED_DEPLOYMENT = "azure_openai"
    GENERIC_COMPATIBLE = "openai"


_PROVIDER_ALIASES: dict[str, ProviderKind] = {
    "azure_openai": ProviderKind.MANAGED_DEPLOYMENT,
    "azureopenai": ProviderKind.MANAGED_DEPLOYMENT,
    "azure": ProviderKind.MANAGED_DEPLOYMENT,
    "managed_deployment": ProviderKind.MANAGED_DEPLOYMENT,
    "openai": ProviderKind.GENERIC_COMPATIBLE,
    "litellm": ProviderKind.GENERIC_COMPATIBLE,
    "generic": ProviderKind.GENERIC_COMPATIBLE,
    "generic_compatible": ProviderKind.GENERIC_COMPATIBLE,
}


def parse_provider_kind(value: str) -> ProviderKind:
    """Resolve a provider name or alias (case-insensitive)."""
    kind = _PROVIDER_ALIASES.get(value.strip().lower().replace("-", "_"))
    if kind is None:
        raise ValueError(f"Unknown provider '{value}'")
    return kind


def _to_decimal(value: Any) -> Any:
    # float -> str -> Decimal keeps 0.005 as exactly 0.005
    if isinstance(value, float):
        return Decimal(str(value))
    return value


class PricingSettings(BaseModel):
    """Fallback price per 1,000 tokens when the model is not in the pricing table."""

    model_config = ConfigDict(frozen=True)

    input_per_1k: Decimal = Decimal("0.005")
    output_per_1k: Decimal = Decimal("0.015")

    @field_validator("input_per_1k", "output_per_1k", mode="before")
    @classmethod
    def coerce_decimal(cls, v: Any) -> Any:
        return _to_decimal(v)

    @field_validator("input_per_1k", "output_per_1k")
    @classmethod
    def non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("prices must not be negative")
        return v

    def as_pair(self) -> tuple[Decimal, Decimal]:
        return self.input_per_1k, self.output_per_1k


class ProviderSettings(BaseModel):
    """Provider configuration consumed by the client factory.

    Settings are frozen; a model switch produces a copy through
    ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True)

    provider: ProviderKind = ProviderKind.MANAGED_DEPLOYMENT
    endpoint: str | None = None
    api_key: SecretStr = SecretStr("")
    model: str = "gpt-5-chat"
    temperature: float = 0.7
    max_tokens: int = 2000
    api_version: str = DEFAULT_AZURE_API_VERSION
    request_timeout_seconds: float = 60.0
    pricing: PricingSettings = Field(default_factory=PricingSettings)

    @field_validator("provider", mode="before")
    @classmethod
    def parse_provider(cls, v: Any) -> Any:
        """Accept case-insensitive provider names and common aliases."""
        if isinstance(v, str) and not isinstance(v, ProviderKind):
            return parse_provider_kind(v)
        return v

    @field_validator("endpoint", mode="before")
    @classmethod
    def blank_endpoint_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("request_timeout_seconds")
    @classmethod
    def positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        return v


# ==============================================================================
# CONVERSATION MANAGEMENT
# ==============================================================================


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ConversationMessage(BaseModel):
    """One stored conversation turn. Immutable once appended."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


# ==============================================================================
# CORE CHAT MESSAGES (LLM API Types)
# ==============================================================================


class SystemMessage(BaseModel):
    """System message for setting context."""

    role: Literal["system"] = "system"
    content: str


class UserMessage(BaseModel):
    """User message."""

    role: Literal["user"] = "user"
    content: str


class AssistantMessage(BaseModel):
    """Assistant message."""

    role: Literal["assistant"] = "assistant"
    content: str


# Union of all message types sent to the completion API
ChatCompletionMessage = SystemMessage | UserMessage | AssistantMessage


# ==============================================================================
# REQUEST/RESPONSE MODELS
# ==============================================================================


class TokenUsage(BaseModel):
    """Token usage information."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class CompletionResult(BaseModel):
    """Normalized completion response."""

    text: str
    model: str
    usage: TokenUsage | None = None
    finish_reason: str | None = None
