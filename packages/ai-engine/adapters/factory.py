"""Builds LLM adapters from a provider name.

    adapter = AdapterFactory.create("openai", api_key="sk-...", model="gpt-4o-mini")
    AdapterFactory.register("my-provider", MyAdapter, default_model="my-model")
"""

import logging

from .base import BaseLLMAdapter
from .openai_adapter import OpenAIAdapter
from .anthropic_adapter import AnthropicAdapter
from .middleware import RetryMiddleware

logger = logging.getLogger(__name__)


class AdapterFactory:
    """Registry of adapter classes keyed by provider name."""

    _registry: dict[str, type[BaseLLMAdapter]] = {
        "openai": OpenAIAdapter,
        "anthropic": AnthropicAdapter,
    }

    _default_models: dict[str, str] = {
        "openai": "gpt-4o",
        "anthropic": "claude-sonnet-4-20250514",
    }

    @classmethod
    def create(
        cls,
        provider: str,
        api_key: str,
        model: str | None = None,
        max_retries: int = 0,
    ) -> BaseLLMAdapter:
        """Create an adapter, optionally wrapped in RetryMiddleware.

        Raises:
            ValueError: if the provider is not registered
        """
        provider = provider.lower().strip()

        if provider not in cls._registry:
            available = ", ".join(sorted(cls._registry))
            raise ValueError(
                f"Unknown LLM provider: '{provider}'. Available providers: {available}"
            )

        model = model or cls._default_models.get(provider, "")
        logger.info("Creating %s adapter with model: %s", provider, model)

        adapter = cls._registry[provider](api_key=api_key, model=model)
        if max_retries > 0:
            adapter = RetryMiddleware(adapter, max_retries=max_retries)
        return adapter

    @classmethod
    def register(
        cls,
        provider: str,
        adapter_class: type[BaseLLMAdapter],
        default_model: str = "",
    ) -> None:
        if not issubclass(adapter_class, BaseLLMAdapter):
            raise TypeError(f"{adapter_class.__name__} must inherit from BaseLLMAdapter")

        key = provider.lower().strip()
        cls._registry[key] = adapter_class
        if default_model:
            cls._default_models[key] = default_model
        logger.info("Registered LLM adapter: %s → %s", provider, adapter_class.__name__)

    @classmethod
    def available_providers(cls) -> list[str]:
        return sorted(cls._registry)
