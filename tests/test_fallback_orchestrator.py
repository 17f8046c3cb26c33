"""
Tests for FallbackOrchestrator.generate (non-streaming).

All provider calls go through FakeChatClient; timeouts use a 200ms budget.
"""

import asyncio
import logging

import pytest

from conftest import M1, M2, M3, M4, SLOW, FakeChatClient, StatusError, overloaded
from orchestrator.errors import AttemptTimeoutError, FallbackFailedError
from orchestrator.fallback_orchestrator import FallbackOrchestrator
from orchestrator.fallback_types import ErrorClass, FallbackConfig, FallbackReason, StopReason


@pytest.mark.asyncio
async def test_first_attempt_success_records_no_fallback(messages, ladder_config):
    client = FakeChatClient()
    orchestrator = FallbackOrchestrator(client, config=ladder_config)

    result = await orchestrator.generate(messages, starting_model=M1)

    assert result.text == f"reply from {M1}"
    assert result.model == M1
    assert result.attempts == 1
    assert result.fallback is None
    assert result.fallback_history == ()
    assert not result.used_fallback
    assert result.token_usage.total_tokens == 8
    assert client.calls == [M1]


@pytest.mark.asyncio
async def test_scenario_a_two_overloads_then_success(messages):
    client = FakeChatClient({M1: overloaded(), M2: overloaded()})
    config = FallbackConfig(ladder=(M1, M2, M3), timeout_ms=200, max_attempts=4)
    orchestrator = FallbackOrchestrator(client, config=config)

    result = await orchestrator.generate(messages, starting_model=M1)

    assert result.model == M3
    assert result.attempts == 3
    assert client.calls == [M1, M2, M3]
    history = result.fallback_history
    assert [(r.failed_model, r.model, r.reason) for r in history] == [
        (M1, M2, FallbackReason.OVERLOADED),
        (M2, M3, FallbackReason.OVERLOADED),
    ]
    assert [r.attempt for r in history] == [2, 3]
    assert all(r.original_model == M1 for r in history)
    assert result.fallback == history[-1]
    assert result.original_model == M1


@pytest.mark.asyncio
async def test_scenario_b_non_recoverable_error_fails_immediately(messages):
    client = FakeChatClient({M1: Exception("invalid request")})
    config = FallbackConfig(ladder=(M1, M2), timeout_ms=200, max_attempts=4)
    orchestrator = FallbackOrchestrator(client, config=config)

    with pytest.raises(FallbackFailedError) as exc_info:
        await orchestrator.generate(messages, starting_model=M1)

    error = exc_info.value
    assert str(error) == "invalid request"
    assert error.attempts == 1
    assert error.fallback_history == []
    assert error.fallback is None
    assert error.error_class == ErrorClass.OTHER
    assert error.stop_reason == StopReason.NON_RECOVERABLE
    assert not error.recoverable
    assert isinstance(error.__cause__, Exception)
    assert error.last_error is error.__cause__
    assert client.calls == [M1]


@pytest.mark.asyncio
async def test_scenario_c_timeout_then_budget_exhausted(messages):
    client = FakeChatClient({M1: SLOW, M2: overloaded()})
    config = FallbackConfig(ladder=(M1, M2, M3, M4), timeout_ms=50, max_attempts=2)
    orchestrator = FallbackOrchestrator(client, config=config)

    with pytest.raises(FallbackFailedError) as exc_info:
        await orchestrator.generate(messages, starting_model=M1)

    error = exc_info.value
    assert client.calls == [M1, M2]
    assert error.attempts == 2
    assert error.model == M2
    assert error.stop_reason == StopReason.MAX_ATTEMPTS
    assert len(error.fallback_history) == 1
    record = error.fallback_history[0]
    assert record.model == M2
    assert record.attempt == 2
    assert record.reason == FallbackReason.TIMEOUT
    assert record.original_model == M1


@pytest.mark.asyncio
async def test_timeout_success_on_next_model(messages):
    client = FakeChatClient({M1: SLOW})
    config = FallbackConfig(ladder=(M1, M2), timeout_ms=50, max_attempts=4)
    orchestrator = FallbackOrchestrator(client, config=config)

    result = await orchestrator.generate(messages, starting_model=M1)

    assert result.model == M2
    assert result.fallback.reason == FallbackReason.TIMEOUT
    assert "timed out after 50ms" in result.fallback.error_message


@pytest.mark.asyncio
async def test_provider_timeout_error_keeps_its_message(messages, ladder_config):
    client = FakeChatClient({M1: TimeoutError("socket read timed out")})
    orchestrator = FallbackOrchestrator(client, config=ladder_config)

    result = await orchestrator.generate(messages, starting_model=M1)

    assert result.model == M2
    assert result.fallback.reason == FallbackReason.TIMEOUT
    assert result.fallback.error_message == "socket read timed out"


@pytest.mark.asyncio
async def test_attempt_timeout_chains_the_expiry(messages):
    client = FakeChatClient({M1: SLOW})
    config = FallbackConfig(ladder=(M1,), timeout_ms=50, max_attempts=1)
    orchestrator = FallbackOrchestrator(client, config=config)

    with pytest.raises(FallbackFailedError) as exc_info:
        await orchestrator.generate(messages, starting_model=M1)

    last_error = exc_info.value.last_error
    assert isinstance(last_error, AttemptTimeoutError)
    assert isinstance(last_error.__cause__, asyncio.TimeoutError)


@pytest.mark.asyncio
async def test_ladder_exhausted_fails_even_with_attempts_left(messages):
    client = FakeChatClient({M3: overloaded("overloaded")})
    config = FallbackConfig(ladder=(M1, M2, M3), timeout_ms=200, max_attempts=10)
    orchestrator = FallbackOrchestrator(client, config=config)

    with pytest.raises(FallbackFailedError) as exc_info:
        await orchestrator.generate(messages, starting_model=M3)

    assert exc_info.value.stop_reason == StopReason.LADDER_EXHAUSTED
    assert exc_info.value.attempts == 1
    assert exc_info.value.recoverable
    assert client.calls == [M3]


@pytest.mark.asyncio
@pytest.mark.parametrize("start_index", [0, 1, 2, 3])
@pytest.mark.parametrize("max_attempts", [1, 2, 3, 4, 6])
async def test_always_overloaded_retry_count(messages, start_index, max_attempts):
    ladder = (M1, M2, M3, M4)
    client = FakeChatClient({m: StatusError("busy", 429) for m in ladder})
    config = FallbackConfig(ladder=ladder, timeout_ms=200, max_attempts=max_attempts)
    orchestrator = FallbackOrchestrator(client, config=config)

    with pytest.raises(FallbackFailedError) as exc_info:
        await orchestrator.generate(messages, starting_model=ladder[start_index])

    expected_attempts = min(max_attempts, len(ladder) - start_index)
    assert len(client.calls) == expected_attempts
    assert len(exc_info.value.fallback_history) == expected_attempts - 1
    assert client.calls == list(ladder[start_index : start_index + expected_attempts])


@pytest.mark.asyncio
async def test_non_recoverable_after_fallback_keeps_history(messages, ladder_config):
    client = FakeChatClient({M1: overloaded(), M2: StatusError("Invalid API key", 401)})
    orchestrator = FallbackOrchestrator(client, config=ladder_config)

    with pytest.raises(FallbackFailedError) as exc_info:
        await orchestrator.generate(messages, starting_model=M1)

    error = exc_info.value
    assert str(error) == "Invalid API key"
    assert error.stop_reason == StopReason.NON_RECOVERABLE
    assert [r.model for r in error.fallback_history] == [M2]
    assert client.calls == [M1, M2]


@pytest.mark.asyncio
async def test_starting_model_defaults_to_first_ladder_entry(messages, ladder_config):
    client = FakeChatClient()
    orchestrator = FallbackOrchestrator(client, config=ladder_config)

    result = await orchestrator.generate(messages)

    assert result.model == M1


@pytest.mark.asyncio
async def test_default_model_is_used_when_in_ladder(messages, ladder_config):
    client = FakeChatClient()
    orchestrator = FallbackOrchestrator(client, config=ladder_config, default_model=M2)

    result = await orchestrator.generate(messages)

    assert result.model == M2
    assert client.calls == [M2]


@pytest.mark.asyncio
async def test_per_call_config_overrides_default(messages, ladder_config):
    client = FakeChatClient({M1: overloaded()})
    orchestrator = FallbackOrchestrator(client, config=ladder_config)
    single_attempt = FallbackConfig(ladder=ladder_config.ladder, timeout_ms=200, max_attempts=1)

    with pytest.raises(FallbackFailedError):
        await orchestrator.generate(messages, starting_model=M1, config=single_attempt)

    assert client.calls == [M1]


@pytest.mark.asyncio
async def test_rejects_starting_model_outside_ladder(messages, ladder_config):
    orchestrator = FallbackOrchestrator(FakeChatClient(), config=ladder_config)

    with pytest.raises(ValueError, match="not in the fallback ladder"):
        await orchestrator.generate(messages, starting_model="unknown-model")


@pytest.mark.asyncio
async def test_rejects_empty_messages(ladder_config):
    orchestrator = FallbackOrchestrator(FakeChatClient(), config=ladder_config)

    with pytest.raises(ValueError, match="messages"):
        await orchestrator.generate([], starting_model=M1)


@pytest.mark.asyncio
async def test_catalog_max_tokens_passed_per_model(messages, catalog):
    client = FakeChatClient({"claude-sonnet-4-20250514": overloaded()})
    orchestrator = FallbackOrchestrator(client, catalog=catalog)

    result = await orchestrator.generate(messages)

    assert result.model == "claude-3-5-sonnet-20241022"
    assert client.max_tokens_seen == {
        "claude-sonnet-4-20250514": 8192,
        "claude-3-5-sonnet-20241022": 8192,
    }


@pytest.mark.asyncio
async def test_each_fallback_emits_one_structured_log_record(messages, ladder_config, caplog):
    client = FakeChatClient({M1: overloaded(), M2: SLOW})
    config = FallbackConfig(ladder=ladder_config.ladder, timeout_ms=50, max_attempts=4)
    orchestrator = FallbackOrchestrator(client, config=config)

    with caplog.at_level(logging.WARNING, logger="orchestrator.fallback_orchestrator"):
        await orchestrator.generate(messages, starting_model=M1)

    records = [r for r in caplog.records if r.getMessage() == "Model fallback triggered"]
    assert len(records) == 2
    fields = [r.extra_fields for r in records]
    assert [(f["fallback_model"], f["attempt"], f["reason"]) for f in fields] == [
        (M2, 2, "overloaded"),
        (M3, 3, "timeout"),
    ]
    assert all(f["original_model"] == M1 for f in fields)


@pytest.mark.asyncio
async def test_concurrent_requests_do_not_share_state(messages, ladder_config):
    client = FakeChatClient({M1: overloaded()})
    orchestrator = FallbackOrchestrator(client, config=ladder_config)

    first, second = await asyncio.gather(
        orchestrator.generate(messages, starting_model=M1),
        orchestrator.generate(messages, starting_model=M2),
    )

    assert first.model == M2
    assert len(first.fallback_history) == 1
    assert second.model == M2
    assert second.fallback is None
    assert first.request_id != second.request_id


def test_attempt_timeout_error_is_a_timeout_error():
    error = AttemptTimeoutError(M1, 45000)
    assert isinstance(error, TimeoutError)
    assert error.model == M1
    assert "45000ms" in str(error)
