"""Clients package containing the LLM client handle and its factory."""

from __future__ import annotations

from .llm_client import ChatClientFactory, ChatCompletionClient
from .model_capabilities import is_advanced_reasoning_model, sampling_parameters

__all__ = [
    "ChatClientFactory",
    "ChatCompletionClient",
    "is_advanced_reasoning_model",
    "sampling_parameters",
]
