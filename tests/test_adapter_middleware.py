"""LLM adapter wrappers — retry policy and usage accounting; no network."""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from adapters import LLMResponse, Message, RetryMiddleware, UsageTrackingMiddleware

MESSAGES = [Message(role="user", content="Build a todo API")]


def _adapter(model: str = "gpt-4o") -> MagicMock:
    adapter = MagicMock()
    adapter.model_name.return_value = model
    adapter.provider_name.return_value = "openai"
    return adapter


def _response(input_tokens: int, output_tokens: int) -> LLMResponse:
    return LLMResponse(
        content="ok",
        model="gpt-4o",
        provider="openai",
        usage={"input": input_tokens, "output": output_tokens, "total": input_tokens + output_tokens},
    )


@pytest.mark.asyncio
async def test_retries_rate_limits_then_succeeds():
    inner = _adapter()
    inner.complete = AsyncMock(side_effect=[RuntimeError("429 Too Many Requests"), _response(1, 1)])
    adapter = RetryMiddleware(inner, max_retries=2)

    with patch("adapters.middleware.asyncio.sleep", new=AsyncMock()) as sleep:
        response = await adapter.complete(MESSAGES, json_mode=True)

    assert response.content == "ok"
    assert inner.complete.await_count == 2
    sleep.assert_awaited_once_with(1.0)
    assert inner.complete.await_args.kwargs == {"json_mode": True, "tool_choice": None}


@pytest.mark.asyncio
async def test_does_not_retry_client_errors():
    inner = _adapter()
    inner.complete = AsyncMock(side_effect=ValueError("invalid api key"))

    with pytest.raises(ValueError):
        await RetryMiddleware(inner, max_retries=3).complete(MESSAGES)
    assert inner.complete.await_count == 1


@pytest.mark.asyncio
async def test_gives_up_after_max_retries():
    inner = _adapter()
    inner.complete = AsyncMock(side_effect=RuntimeError("503 overloaded"))

    with patch("adapters.middleware.asyncio.sleep", new=AsyncMock()):
        with pytest.raises(RuntimeError):
            await RetryMiddleware(inner, max_retries=2).complete(MESSAGES)
    assert inner.complete.await_count == 3


def test_backoff_is_capped():
    adapter = RetryMiddleware(_adapter(), base_delay=1.0, max_delay=5.0)
    assert [adapter.delay_for(n) for n in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]


@pytest.mark.asyncio
async def test_stream_is_not_retried_after_output():
    async def broken_stream(*args, **kwargs):
        yield "partial"
        raise RuntimeError("connection reset")

    inner = _adapter()
    inner.stream = MagicMock(side_effect=broken_stream)
    adapter = RetryMiddleware(inner, max_retries=3)

    received = []
    with pytest.raises(RuntimeError):
        async for chunk in adapter.stream(MESSAGES):
            received.append(chunk)

    assert received == ["partial"]
    assert inner.stream.call_count == 1


@pytest.mark.asyncio
async def test_usage_tracking_accumulates_cost():
    inner = _adapter("gpt-4o")
    inner.complete = AsyncMock(side_effect=[_response(1_000_000, 0), _response(0, 100_000)])
    tracker = UsageTrackingMiddleware(inner)

    await tracker.complete(MESSAGES)
    await tracker.complete(MESSAGES)

    assert tracker.summary() == {
        "calls": 2,
        "input_tokens": 1_000_000,
        "output_tokens": 100_000,
        "cost_usd": 3.5,
    }


@pytest.mark.asyncio
async def test_usage_tracking_counts_streams_and_unknown_models():
    async def chunks(*args, **kwargs):
        for piece in ("a", "b"):
            yield piece

    inner = _adapter("local-model")
    inner.stream = MagicMock(side_effect=chunks)
    inner.complete = AsyncMock(return_value=_response(10, 10))
    tracker = UsageTrackingMiddleware(inner)

    assert [c async for c in tracker.stream(MESSAGES)] == ["a", "b"]
    await tracker.complete(MESSAGES)

    summary = tracker.summary()
    assert summary["calls"] == 2
    assert summary["cost_usd"] == 0.0
