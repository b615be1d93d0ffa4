"""LLM adapter layer.

    from adapters import AdapterFactory, Message

    adapter = AdapterFactory.create("openai", api_key="sk-...")
    response = await adapter.complete([Message(role="user", content="Hello")])
"""

from .base import (
    BaseLLMAdapter,
    LLMResponse,
    Message,
    ToolCall,
    ToolDefinition,
)
from .openai_adapter import OpenAIAdapter
from .anthropic_adapter import AnthropicAdapter
from .factory import AdapterFactory
from .middleware import RetryMiddleware, UsageTrackingMiddleware

__all__ = [
    "BaseLLMAdapter",
    "LLMResponse",
    "Message",
    "ToolCall",
    "ToolDefinition",
    "OpenAIAdapter",
    "AnthropicAdapter",
    "AdapterFactory",
    "RetryMiddleware",
    "UsageTrackingMiddleware",
]
