"""OpenAI chat-completions adapter (gpt-4o, gpt-4o-mini, ...)."""

import json
import time
from typing import AsyncIterator

from openai import AsyncOpenAI

from .base import (
    BaseLLMAdapter,
    LLMResponse,
    Message,
    ToolCall,
    ToolDefinition,
)


class OpenAIAdapter(BaseLLMAdapter):
    """Adapter for OpenAI chat models.

        adapter = OpenAIAdapter(api_key="sk-...", model="gpt-4o-mini")
        response = await adapter.complete(messages, json_mode=True)
    """

    def __init__(self, api_key: str, model: str = "gpt-4o"):
        self._client = AsyncOpenAI(api_key=api_key)
        self._model = model

    # ── Interface methods ─────────────────────────────

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
        tool_choice: str | None = None,
    ) -> LLMResponse:
        start_time = time.time()

        request_args = self._request_args(messages, temperature, max_tokens, json_mode)
        if tools:
            request_args["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.parameters,
                    },
                }
                for tool in tools
            ]
            if tool_choice:
                request_args["tool_choice"] = {"type": "function", "function": {"name": tool_choice}}

        response = await self._client.chat.completions.create(**request_args)

        latency_ms = (time.time() - start_time) * 1000
        return self._parse_response(response, latency_ms)

    async def stream(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> AsyncIterator[str]:
        request_args = self._request_args(messages, temperature, max_tokens, json_mode)
        request_args["stream"] = True

        stream = await self._client.chat.completions.create(**request_args)

        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta.content:
                yield delta.content

    def model_name(self) -> str:
        return self._model

    def provider_name(self) -> str:
        return "openai"

    # ── Private helpers ───────────────────────────────

    def _request_args(
        self, messages: list[Message], temperature: float, max_tokens: int, json_mode: bool
    ) -> dict:
        args = {
            "model": self._model,
            "messages": [self._format_message(m) for m in messages],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            args["response_format"] = {"type": "json_object"}
        return args

    def _format_message(self, msg: Message) -> dict:
        entry: dict = {"role": msg.role, "content": msg.content}
        if msg.tool_calls:
            entry["tool_calls"] = [
                {
                    "id": tc.id,
                    "type": "function",
                    "function": {"name": tc.name, "arguments": json.dumps(tc.arguments)},
                }
                for tc in msg.tool_calls
            ]
        if msg.role == "tool" and msg.tool_call_id:
            entry["tool_call_id"] = msg.tool_call_id
        return entry

    def _parse_response(self, response, latency_ms: float) -> LLMResponse:
        choice = response.choices[0]
        message = choice.message

        tool_calls = []
        for tc in message.tool_calls or []:
            try:
                arguments = json.loads(tc.function.arguments)
            except (json.JSONDecodeError, TypeError):
                arguments = {"raw": tc.function.arguments}
            tool_calls.append(ToolCall(id=tc.id, name=tc.function.name, arguments=arguments))

        usage = {}
        if response.usage is not None:
            usage = {
                "input": response.usage.prompt_tokens,
                "output": response.usage.completion_tokens,
                "total": response.usage.total_tokens,
            }

        return LLMResponse(
            content=message.content or "",
            model=response.model,
            provider="openai",
            usage=usage,
            latency_ms=latency_ms,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason or "",
        )
