"""
Chat Orchestrator

Main coordination layer for one conversation. Owns the active LLM client
handle, the conversation store and the session usage counters, and exposes
the request modes:

- send_message: stateful, history-aware
- send_single_message: stateless single turn
- send_structured: stateless JSON mode parsed into a typed shape
- send_raw: stateless dual prompt with optional one-off model override

Every request mode runs under one lock, so concurrent callers on the same
instance are serialized and histories never interleave.
"""

from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal
from typing import TypeVar

from src.clients.llm_client import ChatClientFactory, ChatCompletionClient
from src.clients.model_capabilities import sampling_parameters
from src.usage import PricingResolver, SessionUsage, UsageAccumulator

from .conversation_manager import ConversationStore
from .logging_utils import log_directional_flow, log_error_with_context, log_llm_reply
from .models import (
    DEFAULT_SYSTEM_PROMPT,
    ChatCompletionMessage,
    CompletionResult,
    ConversationMessage,
    ProviderSettings,
    Role,
    SystemMessage,
    UserMessage,
)
from .structured import parse_structured

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ChatOrchestrator:
    """
    Conversation orchestrator - one instance per conversation
    1. Keeps the system prompt and message history
    2. Builds the request for the active model
    3. Calls the LLM and records token usage and cost
    4. Sends you back the reply
    """

    def __init__(
        self,
        settings: ProviderSettings,
        *,
        client_factory: ChatClientFactory | None = None,
        pricing_resolver: PricingResolver | None = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> None:
        self._client_factory = client_factory or ChatClientFactory()
        self._settings = settings
        self._client: ChatCompletionClient | None = self._client_factory.create(settings)
        self._conversation = ConversationStore(system_prompt)
        self._usage_accumulator = UsageAccumulator(settings.pricing, pricing_resolver)
        self._lock = asyncio.Lock()

        logger.info(
            "ChatOrchestrator initialized with provider: %s, model: %s",
            settings.provider.value,
            settings.model,
        )

    # ------------------------------------------------------------------
    # Read surface
    # ------------------------------------------------------------------

    @property
    def settings(self) -> ProviderSettings:
        return self._settings

    @property
    def model(self) -> str:
        """Model or deployment the active client is bound to."""
        return self._settings.model

    @property
    def system_prompt(self) -> str:
        return self._conversation.system_prompt

    @property
    def history(self) -> tuple[ConversationMessage, ...]:
        return self._conversation.history

    @property
    def usage(self) -> SessionUsage:
        return self._usage_accumulator.snapshot()

    @property
    def total_input_tokens(self) -> int:
        return self._usage_accumulator.input_tokens

    @property
    def total_output_tokens(self) -> int:
        return self._usage_accumulator.output_tokens

    @property
    def total_cost(self) -> Decimal:
        return self._usage_accumulator.total_cost

    @property
    def last_used_model(self) -> str | None:
        return self._usage_accumulator.last_used_model

    @property
    def average_latency_seconds(self) -> float:
        return self._usage_accumulator.average_latency_seconds

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set_system_prompt(self, system_prompt: str) -> None:
        self._conversation.system_prompt = system_prompt

    async def switch_model(self, model_name: str | None) -> None:
        """
        Rebind the active client to another model/deployment.

        No-op for a blank name or the currently bound model. History and
        usage stats are kept.
        """
        if not model_name or not model_name.strip() or model_name == self._settings.model:
            return

        async with self._lock:
            if model_name == self._settings.model:
                return
            new_settings = self._settings.model_copy(update={"model": model_name})
            # Build first so a configuration failure leaves the old binding in place
            new_client = self._client_factory.create(new_settings)
            logger.info("Switching model from %s to %s", self._settings.model, model_name)
            old_client = self._client
            self._settings = new_settings
            self._client = new_client
            if old_client is not None:
                await old_client.aclose()

    async def clear_history(self) -> None:
        """Start a new conversation: drop all messages and reset usage stats."""
        async with self._lock:
            self._conversation.clear()
            self._usage_accumulator.reset()
            logger.debug("Conversation history and stats cleared.")

    # ------------------------------------------------------------------
    # Request modes
    # ------------------------------------------------------------------

    async def send_message(self, user_message: str, *, timeout: float | None = None) -> str:
        """
        Send a message and get the assistant's reply.

        The user message is stored before the call. On failure it stays in
        history without a matching assistant reply.
        """
        async with self._lock:
            client = self._require_client()
            try:
                self._conversation.append(Role.USER, user_message)
                messages = self._conversation.build_request_messages()

                log_directional_flow("→", "LLM", "chat request with %d messages", len(messages))
                result = await self._complete(client, messages, timeout=timeout)

                self._conversation.append(Role.ASSISTANT, result.text)
            except Exception as e:
                log_error_with_context("in LLM chat request", e)
                raise

            log_llm_reply(result.text, result.model, "chat")
            return result.text

    async def send_single_message(
        self,
        user_message: str,
        system_prompt: str | None = None,
        *,
        timeout: float | None = None,
    ) -> str:
        """Send a single-turn message; stored history is neither read nor written."""
        async with self._lock:
            client = self._require_client()
            messages = self._single_turn(user_message, system_prompt)
            try:
                log_directional_flow("→", "LLM", "single message request")
                result = await self._complete(client, messages, timeout=timeout)
            except Exception as e:
                log_error_with_context("in LLM single message request", e)
                raise

            log_llm_reply(result.text, result.model, "single message")
            return result.text

    async def send_structured(
        self,
        user_message: str,
        response_model: type[T],
        system_prompt: str | None = None,
        *,
        timeout: float | None = None,
    ) -> T:
        """
        Send a single-turn message in JSON mode and parse the reply.

        Raises:
            DeserializationError: the reply does not fit ``response_model``
        """
        async with self._lock:
            client = self._require_client()
            messages = self._single_turn(user_message, system_prompt)
            try:
                log_directional_flow("→", "LLM", "JSON request for %s", getattr(response_model, "__name__", response_model))
                result = await self._complete(client, messages, json_mode=True, timeout=timeout)
                log_llm_reply(result.text, result.model, "JSON")
                return parse_structured(result.text, response_model)
            except Exception as e:
                log_error_with_context("in LLM JSON request", e)
                raise

    async def send_raw(
        self,
        system_prompt: str,
        user_prompt: str,
        model_override: str | None = None,
        *,
        timeout: float | None = None,
    ) -> str:
        """
        Send a system + user prompt pair and return the raw reply text.

        Used by background callers such as prompt generation and evaluation.
        A ``model_override`` that differs from the bound model gets its own
        short-lived client which is closed after the call; the active client
        is never touched.
        """
        async with self._lock:
            client = self._require_client()
            target_model = model_override or self._settings.model
            params = sampling_parameters(target_model, self._settings)
            messages: list[ChatCompletionMessage] = [
                SystemMessage(content=system_prompt),
                UserMessage(content=user_prompt),
            ]

            try:
                if model_override and model_override.casefold() != self._settings.model.casefold():
                    transient_settings = self._settings.model_copy(update={"model": model_override})
                    log_directional_flow("→", "LLM", "raw request via transient client for %s", model_override)
                    async with self._client_factory.create(transient_settings) as transient:
                        result = await self._complete(transient, messages, timeout=timeout, **params)
                else:
                    log_directional_flow("→", "LLM", "raw request")
                    result = await self._complete(client, messages, timeout=timeout, **params)
            except Exception as e:
                log_error_with_context("in LLM raw request", e)
                raise

            log_llm_reply(result.text, result.model, "raw")
            return result.text

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_client(self) -> ChatCompletionClient:
        if self._client is None:
            raise RuntimeError("Chat orchestrator is closed")
        return self._client

    def _single_turn(self, user_message: str, system_prompt: str | None) -> list[ChatCompletionMessage]:
        return [
            SystemMessage(content=system_prompt if system_prompt is not None else self._conversation.system_prompt),
            UserMessage(content=user_message),
        ]

    async def _complete(
        self,
        client: ChatCompletionClient,
        messages: list[ChatCompletionMessage],
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_mode: bool = False,
        timeout: float | None = None,
    ) -> CompletionResult:
        """Invoke the client once and record usage for the call."""
        start_time = time.monotonic()
        result = await client.complete(
            messages,
            temperature=temperature,
            max_tokens=max_tokens,
            json_mode=json_mode,
            timeout=timeout,
        )
        elapsed = time.monotonic() - start_time
        log_directional_flow("←", "LLM", "reply from %s in %.2fs", result.model, elapsed)

        if result.usage is None:
            logger.debug("No usage block in response from %s; usage not recorded", result.model)
        else:
            self._usage_accumulator.record(
                result.usage.prompt_tokens,
                result.usage.completion_tokens,
                result.model,
                elapsed,
            )
        return result

    async def close(self) -> None:
        """Close the active client. Further requests raise RuntimeError."""
        async with self._lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None
                logger.info("LLM client closed successfully")

    async def __aenter__(self) -> ChatOrchestrator:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()
