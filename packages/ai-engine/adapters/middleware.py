"""Adapter wrappers for retries and token accounting.

Wrappers are adapters themselves, so they stack:

    adapter = RetryMiddleware(UsageTrackingMiddleware(OpenAIAdapter(api_key="sk-...")))
"""

import asyncio
import logging
from typing import AsyncIterator

from .base import (
    BaseLLMAdapter,
    LLMResponse,
    Message,
    ToolDefinition,
)

logger = logging.getLogger(__name__)

RETRYABLE_MARKERS = ("429", "rate limit", "500", "502", "503", "timeout", "connection", "overloaded")


class _Wrapper(BaseLLMAdapter):
    """Delegates everything to the wrapped adapter."""

    def __init__(self, adapter: BaseLLMAdapter):
        self._adapter = adapter

    async def complete(self, messages, tools=None, temperature=0.7, max_tokens=4096,
                       json_mode=False, tool_choice=None) -> LLMResponse:
        return await self._adapter.complete(
            messages, tools, temperature, max_tokens, json_mode=json_mode, tool_choice=tool_choice
        )

    async def stream(self, messages, temperature=0.7, max_tokens=4096,
                     json_mode=False) -> AsyncIterator[str]:
        async for chunk in self._adapter.stream(messages, temperature, max_tokens, json_mode=json_mode):
            yield chunk

    def model_name(self) -> str:
        return self._adapter.model_name()

    def provider_name(self) -> str:
        return self._adapter.provider_name()


class RetryMiddleware(_Wrapper):
    """Retries rate-limit, 5xx and connection failures with exponential backoff.

    A stream is only retried while nothing has been yielded yet; once text
    reached the caller, a failure propagates so output is never duplicated.
    """

    def __init__(
        self,
        adapter: BaseLLMAdapter,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
    ):
        super().__init__(adapter)
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._max_delay = max_delay

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
        tool_choice: str | None = None,
    ) -> LLMResponse:
        for attempt in range(self._max_retries + 1):
            try:
                return await self._adapter.complete(
                    messages, tools, temperature, max_tokens,
                    json_mode=json_mode, tool_choice=tool_choice,
                )
            except Exception as e:
                if not self.should_retry(e) or attempt == self._max_retries:
                    raise
                await self._backoff(attempt, e)
        raise RuntimeError("unreachable")

    async def stream(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> AsyncIterator[str]:
        for attempt in range(self._max_retries + 1):
            yielded = False
            try:
                async for chunk in self._adapter.stream(
                    messages, temperature, max_tokens, json_mode=json_mode
                ):
                    yielded = True
                    yield chunk
                return
            except Exception as e:
                if yielded or not self.should_retry(e) or attempt == self._max_retries:
                    raise
                await self._backoff(attempt, e)

    @staticmethod
    def should_retry(error: Exception) -> bool:
        text = str(error).lower()
        return any(marker in text for marker in RETRYABLE_MARKERS)

    def delay_for(self, attempt: int) -> float:
        """1s, 2s, 4s, ... capped at max_delay."""
        return min(self._base_delay * (2 ** attempt), self._max_delay)

    async def _backoff(self, attempt: int, error: Exception) -> None:
        delay = self.delay_for(attempt)
        logger.warning(
            "LLM call attempt %d/%d failed: %s. Retrying in %.1fs...",
            attempt + 1, self._max_retries + 1, str(error)[:100], delay,
        )
        await asyncio.sleep(delay)


class UsageTrackingMiddleware(_Wrapper):
    """Accumulates token usage and estimated cost across calls.

    Streaming calls report no usage and are counted as calls only.
    """

    # USD per 1M tokens
    COST_PER_MILLION = {
        "gpt-4o":           {"input": 2.50,  "output": 10.00},
        "gpt-4o-mini":      {"input": 0.15,  "output": 0.60},
        "claude-sonnet-4-20250514":  {"input": 3.00,  "output": 15.00},
    }

    def __init__(self, adapter: BaseLLMAdapter):
        super().__init__(adapter)
        self.call_count = 0
        self.input_tokens = 0
        self.output_tokens = 0
        self.cost_usd = 0.0

    async def complete(self, messages, tools=None, temperature=0.7, max_tokens=4096,
                       json_mode=False, tool_choice=None) -> LLMResponse:
        response = await super().complete(
            messages, tools, temperature, max_tokens, json_mode=json_mode, tool_choice=tool_choice
        )
        self.call_count += 1
        input_tokens = response.usage.get("input", 0)
        output_tokens = response.usage.get("output", 0)
        self.input_tokens += input_tokens
        self.output_tokens += output_tokens

        rates = self.COST_PER_MILLION.get(self.model_name(), {"input": 0, "output": 0})
        self.cost_usd += (input_tokens * rates["input"] + output_tokens * rates["output"]) / 1_000_000
        logger.info(
            "LLM call [%s/%s]: %d in + %d out tokens (running cost $%.4f)",
            response.provider, response.model, input_tokens, output_tokens, self.cost_usd,
        )
        return response

    async def stream(self, messages, temperature=0.7, max_tokens=4096,
                     json_mode=False) -> AsyncIterator[str]:
        self.call_count += 1
        async for chunk in super().stream(messages, temperature, max_tokens, json_mode=json_mode):
            yield chunk

    def summary(self) -> dict:
        return {
            "calls": self.call_count,
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cost_usd": round(self.cost_usd, 6),
        }
