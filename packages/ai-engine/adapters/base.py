"""Provider-neutral LLM interface used by every generation agent.

Agents build a list of `Message` objects and call `complete()` or
`stream()` on whatever adapter they were given. Tests hand them a mock
with the same two coroutines.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator


@dataclass
class ToolCall:
    """A function call the model asked for."""
    id: str
    name: str                  # e.g. "classify_command"
    arguments: dict


@dataclass
class LLMResponse:
    """Normalised result of a non-streaming completion."""
    content: str                           # Empty when the model only called tools
    model: str
    provider: str
    usage: dict = field(default_factory=dict)  # {"input": n, "output": n, "total": n}
    latency_ms: float = 0.0
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str = ""                # "stop", "tool_calls", "length", ...


@dataclass
class Message:
    """One turn of a conversation.

        [
            Message(role="system", content=coding_prompt),
            Message(role="user", content="Add a pricing page"),
        ]
    """
    role: str                                    # "system", "user", "assistant", "tool"
    content: str = ""
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None              # Set on role="tool" replies


@dataclass
class ToolDefinition:
    """A function the model may call, described with JSON Schema."""
    name: str
    description: str
    parameters: dict


class BaseLLMAdapter(ABC):
    """Contract every LLM provider implements.

    `json_mode=True` asks the provider to return a single JSON object.
    Providers without a native switch get an extra system instruction.
    `tool_choice` names a tool the model must call.
    """

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
        tool_choice: str | None = None,
    ) -> LLMResponse:
        """Return the whole response once the model has finished."""
        ...

    @abstractmethod
    async def stream(
        self,
        messages: list[Message],
        temperature: float = 0.7,
        max_tokens: int = 4096,
        json_mode: bool = False,
    ) -> AsyncIterator[str]:
        """Yield text deltas as the model produces them.

            async for chunk in adapter.stream(messages):
                buffer += chunk
        """
        ...

    @abstractmethod
    def model_name(self) -> str:
        ...

    @abstractmethod
    def provider_name(self) -> str:
        ...
