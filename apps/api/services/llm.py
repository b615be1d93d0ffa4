"""Builds the LLM, embedding and file-index objects the generation code needs.

Everything is configured from settings; nothing here holds state, so tests
can patch these functions to hand in mocks.
"""

import logging

from adapters import AdapterFactory, BaseLLMAdapter
from embeddings import BaseEmbeddingAdapter, EmbeddingFactory
from retrieval import FileIndex

from apps.api.config import settings

logger = logging.getLogger(__name__)


def _api_key(provider: str) -> str:
    keys = {
        "openai": settings.openai_api_key,
        "anthropic": settings.anthropic_api_key,
    }
    api_key = keys.get(provider.lower(), "")
    if not api_key:
        raise RuntimeError(f"No API key configured for LLM provider '{provider}'")
    return api_key


def get_decision_adapter() -> BaseLLMAdapter:
    """Small, fast model used for intent classification."""
    provider = settings.default_llm_provider
    return AdapterFactory.create(
        provider,
        api_key=_api_key(provider),
        model=settings.decision_model,
        max_retries=settings.llm_max_retries,
    )


def get_coding_adapter() -> BaseLLMAdapter:
    """Strong model used for code, answers and API specs."""
    provider = settings.default_llm_provider
    return AdapterFactory.create(
        provider,
        api_key=_api_key(provider),
        model=settings.coding_model,
        max_retries=settings.llm_max_retries,
    )


def get_embedder() -> BaseEmbeddingAdapter | None:
    """OpenAI embeddings, or None when no OpenAI key is configured."""
    if not settings.openai_api_key:
        logger.debug("No OpenAI key configured, semantic file search disabled")
        return None
    return EmbeddingFactory.create("openai", api_key=settings.openai_api_key, model=settings.embedding_model)


def get_file_index() -> FileIndex | None:
    embedder = get_embedder()
    return FileIndex(embedder) if embedder else None
