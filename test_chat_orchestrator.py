"""Tests for the chat orchestrator request modes and session state."""

import asyncio
from decimal import Decimal

import pytest
from pydantic import BaseModel

from src.chat.chat_orchestrator import ChatOrchestrator
from src.chat.models import CompletionResult, Role, TokenUsage
from src.errors import ConfigurationError, DeserializationError, ProviderRequestError


class Score(BaseModel):
    score: float
    reasoning: str


async def test_history_grows_by_two_per_successful_turn(orchestrator):
    for i in range(3):
        reply = await orchestrator.send_message(f"question {i}")
        assert reply == "ok"

    history = orchestrator.history
    assert len(history) == 6
    assert [m.role for m in history] == [Role.USER, Role.ASSISTANT] * 3
    assert [m.content for m in history[::2]] == ["question 0", "question 1", "question 2"]


async def test_send_message_sends_full_history_without_sampling_overrides(orchestrator, client_factory):
    client_factory.queue("first answer", "second answer")
    await orchestrator.send_message("one")
    await orchestrator.send_message("two")

    call = client_factory.created[0].calls[-1]
    assert call["messages"] == [
        {"role": "system", "content": "You are a helpful assistant."},
        {"role": "user", "content": "one"},
        {"role": "assistant", "content": "first answer"},
        {"role": "user", "content": "two"},
    ]
    assert call["temperature"] is None
    assert call["max_tokens"] is None
    assert call["json_mode"] is False


async def test_failed_turn_keeps_user_message(orchestrator, client_factory):
    client_factory.queue(ProviderRequestError("rate limited", status_code=429))

    with pytest.raises(ProviderRequestError):
        await orchestrator.send_message("hello?")

    assert [(m.role, m.content) for m in orchestrator.history] == [(Role.USER, "hello?")]
    assert orchestrator.usage.request_count == 0


async def test_usage_tracks_served_model(orchestrator, client_factory):
    client_factory.queue(
        CompletionResult(
            text="hi",
            model="gpt-4o-2024-08-06",
            usage=TokenUsage(prompt_tokens=1000, completion_tokens=1000, total_tokens=2000),
        )
    )

    await orchestrator.send_message("hi")

    assert orchestrator.total_input_tokens == 1000
    assert orchestrator.total_output_tokens == 1000
    assert orchestrator.total_cost == Decimal("0.020")
    assert orchestrator.last_used_model == "gpt-4o-2024-08-06"
    assert orchestrator.average_latency_seconds >= 0.0


async def test_reply_without_usage_is_not_counted(orchestrator, client_factory):
    client_factory.queue(CompletionResult(text="hi", model="gpt-4o", usage=None))

    await orchestrator.send_message("hi")

    assert orchestrator.usage.request_count == 0
    assert len(orchestrator.history) == 2


async def test_clear_history_resets_history_and_usage(orchestrator):
    await orchestrator.send_message("a")
    await orchestrator.send_message("b")

    await orchestrator.clear_history()

    usage = orchestrator.usage
    assert orchestrator.history == ()
    assert usage.input_tokens == 0
    assert usage.output_tokens == 0
    assert usage.total_cost == Decimal(0)
    assert usage.request_count == 0
    assert usage.average_latency_seconds == 0.0
    assert usage.last_used_model is None


async def test_switch_to_same_model_is_a_no_op(orchestrator, client_factory):
    await orchestrator.send_message("hi")

    await orchestrator.switch_model("gpt-4o")

    assert client_factory.create_count == 1
    assert len(orchestrator.history) == 2
    assert orchestrator.usage.request_count == 1


@pytest.mark.parametrize("name", ["", "   ", None])
async def test_switch_to_blank_model_is_a_no_op(orchestrator, client_factory, name):
    await orchestrator.switch_model(name)
    assert client_factory.create_count == 1
    assert orchestrator.model == "gpt-4o"


async def test_switch_model_rebinds_and_keeps_state(orchestrator, client_factory):
    await orchestrator.send_message("hi")
    old_client = client_factory.created[0]

    await orchestrator.switch_model("gpt-4o-mini")
    await orchestrator.send_message("again")

    assert orchestrator.model == "gpt-4o-mini"
    assert client_factory.create_count == 2
    assert old_client.closed
    assert len(client_factory.created[1].calls) == 1
    assert len(orchestrator.history) == 4
    assert orchestrator.usage.request_count == 2


async def test_failed_switch_keeps_current_binding(orchestrator, client_factory):
    original_create = client_factory.create

    def failing_create(settings):
        raise ConfigurationError("Missing llm.api_key in configuration.")

    client_factory.create = failing_create
    with pytest.raises(ConfigurationError):
        await orchestrator.switch_model("gpt-4o-mini")
    client_factory.create = original_create

    assert orchestrator.model == "gpt-4o"
    assert await orchestrator.send_message("still there?") == "ok"


async def test_single_message_leaves_history_alone(orchestrator, client_factory):
    orchestrator.set_system_prompt("Default prompt")

    reply = await orchestrator.send_single_message("translate this", "You translate.")

    assert reply == "ok"
    assert orchestrator.history == ()
    assert client_factory.created[0].calls[0]["messages"] == [
        {"role": "system", "content": "You translate."},
        {"role": "user", "content": "translate this"},
    ]
    assert orchestrator.usage.request_count == 1


async def test_single_message_defaults_to_current_system_prompt(orchestrator, client_factory):
    orchestrator.set_system_prompt("Be terse.")
    await orchestrator.send_single_message("hi")
    assert client_factory.created[0].calls[0]["messages"][0]["content"] == "Be terse."


async def test_structured_reply_is_parsed(orchestrator, client_factory):
    client_factory.queue('{"score": 85, "reasoning": "ok"}')

    result = await orchestrator.send_structured("rate this", Score)

    assert result.score == 85
    assert result.reasoning == "ok"
    assert client_factory.created[0].calls[0]["json_mode"] is True
    assert orchestrator.history == ()


async def test_structured_reply_that_is_not_json_fails(orchestrator, client_factory):
    client_factory.queue("not json")

    with pytest.raises(DeserializationError):
        await orchestrator.send_structured("rate this", Score)

    assert orchestrator.history == ()


@pytest.mark.parametrize("model", ["o1-preview", "gpt-5-chat", "GPT-5"])
async def test_send_raw_omits_sampling_for_reasoning_models(provider_settings, client_factory, model):
    settings = provider_settings.model_copy(update={"model": model})
    async with ChatOrchestrator(settings, client_factory=client_factory) as orch:
        await orch.send_raw("sys", "user")

    call = client_factory.created[0].calls[0]
    assert call["temperature"] is None
    assert call["max_tokens"] is None


async def test_send_raw_includes_configured_sampling(orchestrator, client_factory):
    reply = await orchestrator.send_raw("sys", "user")

    call = client_factory.created[0].calls[0]
    assert reply == "ok"
    assert call["temperature"] == 0.7
    assert call["max_tokens"] == 2000
    assert call["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "user"},
    ]
    assert orchestrator.history == ()


async def test_send_raw_override_uses_transient_client(orchestrator, client_factory):
    active = client_factory.created[0]

    await orchestrator.send_raw("sys", "user", model_override="o1-mini")

    assert client_factory.create_count == 2
    transient = client_factory.created[1]
    assert transient.model == "o1-mini"
    assert transient.closed
    assert transient.calls[0]["temperature"] is None
    assert active.calls == []
    assert not active.closed
    assert orchestrator.model == "gpt-4o"


async def test_send_raw_override_matching_bound_model_reuses_client(orchestrator, client_factory):
    await orchestrator.send_raw("sys", "user", model_override="GPT-4O")

    assert client_factory.create_count == 1
    assert len(client_factory.created[0].calls) == 1


async def test_timeout_is_forwarded(orchestrator, client_factory):
    await orchestrator.send_message("hi", timeout=5.0)
    assert client_factory.created[0].calls[0]["timeout"] == 5.0


async def test_concurrent_sends_do_not_interleave(orchestrator):
    await asyncio.gather(*(orchestrator.send_message(f"q{i}") for i in range(5)))

    history = orchestrator.history
    assert len(history) == 10
    assert [m.role for m in history] == [Role.USER, Role.ASSISTANT] * 5
    assert orchestrator.usage.request_count == 5


async def test_closed_orchestrator_rejects_requests(orchestrator, client_factory):
    await orchestrator.close()

    assert client_factory.created[0].closed
    with pytest.raises(RuntimeError):
        await orchestrator.send_message("hi")


async def test_cancelled_turn_keeps_user_message_and_releases_lock(orchestrator, client_factory):
    started = asyncio.Event()
    client = client_factory.created[0]
    original_complete = client.complete

    async def slow_complete(messages, **kwargs):
        started.set()
        await asyncio.sleep(10)
        return await original_complete(messages, **kwargs)

    client.complete = slow_complete
    task = asyncio.create_task(orchestrator.send_message("hi"))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert [m.role for m in orchestrator.history] == [Role.USER]
    assert orchestrator.usage.request_count == 0

    client.complete = original_complete
    assert await orchestrator.send_message("next") == "ok"
    assert [m.role for m in orchestrator.history] == [Role.USER, Role.USER, Role.ASSISTANT]


async def test_conversation_and_usage_are_not_public(orchestrator):
    assert not hasattr(orchestrator, "conversation")
    assert not hasattr(orchestrator, "usage_accumulator")
