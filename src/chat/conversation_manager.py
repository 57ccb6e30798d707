"""
Conversation Management

In-memory conversation state for one chat session:
- The active system prompt
- An append-only, ordered log of role-tagged messages
- Assembly of the request message list sent to the LLM

Messages are never edited or removed one at a time; the only way back is a
full clear.
"""

from __future__ import annotations

import logging

from .models import (
    DEFAULT_SYSTEM_PROMPT,
    AssistantMessage,
    ChatCompletionMessage,
    ConversationMessage,
    Role,
    SystemMessage,
    UserMessage,
)

logger = logging.getLogger(__name__)


class ConversationStore:
    """Ordered conversation history plus the current system prompt."""

    def __init__(self, system_prompt: str = DEFAULT_SYSTEM_PROMPT) -> None:
        self._system_prompt = system_prompt
        self._messages: list[ConversationMessage] = []

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    @system_prompt.setter
    def system_prompt(self, value: str) -> None:
        self._system_prompt = value
        logger.debug("System prompt updated.")

    @property
    def history(self) -> tuple[ConversationMessage, ...]:
        """Read-only view of the stored messages in conversation order."""
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, role: Role, content: str) -> ConversationMessage:
        message = ConversationMessage(role=role, content=content)
        self._messages.append(message)
        return message

    def clear(self) -> None:
        self._messages.clear()
        logger.debug("Conversation history cleared.")

    def build_request_messages(self) -> list[ChatCompletionMessage]:
        """
        Build the request message list for the LLM API.

        The current system prompt goes first, followed by every stored user
        and assistant message in order. Stored messages with any other role
        are skipped.
        """
        conv: list[ChatCompletionMessage] = [SystemMessage(content=self._system_prompt)]

        for msg in self._messages:
            if msg.role is Role.USER:
                conv.append(UserMessage(content=msg.content))
            elif msg.role is Role.ASSISTANT:
                conv.append(AssistantMessage(content=msg.content))

        logger.debug("Built conversation with %d messages (including system prompt)", len(conv))
        return conv
