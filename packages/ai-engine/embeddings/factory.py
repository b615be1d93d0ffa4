"""Builds embedding adapters from a provider name."""

import logging

from .base import BaseEmbeddingAdapter
from .openai_adapter import OpenAIEmbeddingAdapter

logger = logging.getLogger(__name__)


class EmbeddingFactory:
    """Registry of embedding adapters keyed by provider name.

        adapter = EmbeddingFactory.create("openai", api_key="sk-...")
        result = await adapter.embed("export default function Page() {}")
    """

    _registry: dict[str, type[BaseEmbeddingAdapter]] = {
        "openai": OpenAIEmbeddingAdapter,
    }

    _default_models: dict[str, str] = {
        "openai": "text-embedding-3-small",
    }

    @classmethod
    def create(
        cls,
        provider: str,
        api_key: str,
        model: str | None = None,
    ) -> BaseEmbeddingAdapter:
        provider = provider.lower().strip()

        if provider not in cls._registry:
            available = ", ".join(sorted(cls._registry))
            raise ValueError(
                f"Unknown embedding provider: '{provider}'. Available providers: {available}"
            )

        model = model or cls._default_models.get(provider, "")
        logger.info("Creating %s embedding adapter with model: %s", provider, model)
        return cls._registry[provider](api_key=api_key, model=model)

    @classmethod
    def register(
        cls,
        provider: str,
        adapter_class: type[BaseEmbeddingAdapter],
        default_model: str = "",
    ) -> None:
        if not issubclass(adapter_class, BaseEmbeddingAdapter):
            raise TypeError(f"{adapter_class.__name__} must inherit from BaseEmbeddingAdapter")

        key = provider.lower().strip()
        cls._registry[key] = adapter_class
        if default_model:
            cls._default_models[key] = default_model
