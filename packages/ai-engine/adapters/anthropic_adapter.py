"""Anthropic Messages API adapter.

Differences from OpenAI handled here:
- the system prompt is a top-level parameter, not a message
- tool results travel as `tool_result` blocks inside a user turn
- there is no JSON response switch, so json_mode adds an instruction
"""

import time
from typing import AsyncIterator

from anthropic import AsyncAnthropic

from .base import (
    BaseLLMAdapter,
    LLMResponse,
    Message,
    ToolCall,
    ToolDefinition,
)

JSON_ONLY_INSTRUCTION = (
    "Respond with a single valid JSON object and nothing else. "
    "Do not wrap it in markdown code fences."
)


class AnthropicAdapter(BaseLLMAdapter):
    """Adapter for Claude models.

        adapter = AnthropicAdapter(api_key="sk-ant-...", model="claude-sonnet-4-20250514")
    """

    def __init__(self, api_key: str, model: str = "claude-sonnet-4-20250514"):
        self._client = AsyncAnthropic(api_key=api_key)
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
                {"name": t.name, "description": t.description, "input_schema": t.parameters}
                for t in tools
            ]
            if tool_choice:
                request_args["tool_choice"] = {"type": "tool", "name": tool_choice}

        response = await self._client.messages.create(**request_args)

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

        async with self._client.messages.stream(**request_args) as stream:
            async for text in stream.text_stream:
                yield text

    def model_name(self) -> str:
        return self._model

    def provider_name(self) -> str:
        return "anthropic"

    # ── Private helpers ───────────────────────────────

    def _request_args(
        self, messages: list[Message], temperature: float, max_tokens: int, json_mode: bool
    ) -> dict:
        system_parts = [m.content for m in messages if m.role == "system"]
        if json_mode:
            system_parts.append(JSON_ONLY_INSTRUCTION)

        args = {
            "model": self._model,
            "messages": [self._format_message(m) for m in messages if m.role != "system"],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if system_parts:
            args["system"] = "\n\n".join(system_parts)
        return args

    def _format_message(self, msg: Message) -> dict:
        if msg.role == "assistant" and msg.tool_calls:
            blocks = [{"type": "text", "text": msg.content}] if msg.content else []
            blocks.extend(
                {"type": "tool_use", "id": tc.id, "name": tc.name, "input": tc.arguments}
                for tc in msg.tool_calls
            )
            return {"role": "assistant", "content": blocks}

        if msg.role == "tool":
            return {
                "role": "user",
                "content": [
                    {"type": "tool_result", "tool_use_id": msg.tool_call_id, "content": msg.content}
                ],
            }

        return {"role": msg.role, "content": msg.content}

    def _parse_response(self, response, latency_ms: float) -> LLMResponse:
        content = ""
        tool_calls = []

        for block in response.content:
            if block.type == "text":
                content += block.text
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(
                        id=block.id,
                        name=block.name,
                        arguments=block.input if isinstance(block.input, dict) else {},
                    )
                )

        return LLMResponse(
            content=content,
            model=response.model,
            provider="anthropic",
            usage={
                "input": response.usage.input_tokens,
                "output": response.usage.output_tokens,
                "total": response.usage.input_tokens + response.usage.output_tokens,
            },
            latency_ms=latency_ms,
            tool_calls=tool_calls,
            finish_reason=response.stop_reason or "",
        )
