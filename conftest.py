"""
Shared fixtures: provider settings and an in-memory stand-in for the LLM
client factory, so orchestrator tests never touch the network.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any

import pytest

from src.chat.logging_utils import reset_module_features
from src.chat.models import CompletionResult, ProviderSettings, TokenUsage


class FakeCompletionClient:
    """Records every call and answers from the factory's reply queue."""

    def __init__(self, model: str, replies: deque[Any]):
        self.model = model
        self.calls: list[dict[str, Any]] = []
        self.closed = False
        self._replies = replies

    async def complete(
        self,
        messages,
        *,
        temperature=None,
        max_tokens=None,
        json_mode=False,
        timeout=None,
    ) -> CompletionResult:
        self.calls.append(
            {
                "messages": [msg.model_dump() for msg in messages],
                "temperature": temperature,
                "max_tokens": max_tokens,
                "json_mode": json_mode,
                "timeout": timeout,
            }
        )
        # Let other tasks run so concurrent callers can interleave if unguarded
        await asyncio.sleep(0)

        reply = self._replies.popleft() if self._replies else "ok"
        if isinstance(reply, BaseException):
            raise reply
        if isinstance(reply, CompletionResult):
            return reply
        return CompletionResult(
            text=reply,
            model=self.model,
            usage=TokenUsage(prompt_tokens=1000, completion_tokens=1000, total_tokens=2000),
            finish_reason="stop",
        )

    async def aclose(self) -> None:
        self.closed = True

    async def __aenter__(self) -> FakeCompletionClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


class CountingClientFactory:
    """Client factory stand-in that counts and keeps every handle it builds."""

    def __init__(self) -> None:
        self.created: list[FakeCompletionClient] = []
        self.replies: deque[Any] = deque()

    @property
    def create_count(self) -> int:
        return len(self.created)

    def create(self, settings: ProviderSettings) -> FakeCompletionClient:
        client = FakeCompletionClient(settings.model, self.replies)
        self.created.append(client)
        return client

    def queue(self, *replies: Any) -> None:
        self.replies.extend(replies)


@pytest.fixture(autouse=True)
def _clean_logging_features():
    reset_module_features()
    yield
    reset_module_features()


@pytest.fixture
def provider_settings() -> ProviderSettings:
    return ProviderSettings(
        provider="openai",
        api_key="sk-test",
        model="gpt-4o",
        temperature=0.7,
        max_tokens=2000,
    )


@pytest.fixture
def client_factory() -> CountingClientFactory:
    return CountingClientFactory()


@pytest.fixture
async def orchestrator(provider_settings, client_factory):
    from src.chat.chat_orchestrator import ChatOrchestrator

    orch = ChatOrchestrator(provider_settings, client_factory=client_factory)
    yield orch
    await orch.close()
