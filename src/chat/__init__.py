"""
Chat Module

Conversation state, LLM message types and structured reply parsing.
The orchestrator lives in ``src.chat.chat_orchestrator``.
"""

from .conversation_manager import ConversationStore
from .models import (
    DEFAULT_SYSTEM_PROMPT,
    ConversationMessage,
    PricingSettings,
    ProviderKind,
    ProviderSettings,
    Role,
)
from .structured import parse_structured

__all__ = [
    "DEFAULT_SYSTEM_PROMPT",
    "ConversationMessage",
    "ConversationStore",
    "PricingSettings",
    "ProviderKind",
    "ProviderSettings",
    "Role",
    "parse_structured",
]
