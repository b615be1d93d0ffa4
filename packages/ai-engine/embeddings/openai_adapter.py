"""OpenAI embeddings (text-embedding-3-small by default)."""

import logging
from openai import AsyncOpenAI

from .base import BaseEmbeddingAdapter, EmbeddingResult

logger = logging.getLogger(__name__)

# Largest input list the embeddings endpoint accepts in one request
MAX_INPUTS_PER_REQUEST = 2048


class OpenAIEmbeddingAdapter(BaseEmbeddingAdapter):

    _MODEL_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
    }

    def __init__(self, api_key: str, model: str = "text-embedding-3-small"):
        self._model = model
        self._client = AsyncOpenAI(api_key=api_key)

        if model not in self._MODEL_DIMENSIONS:
            logger.warning("Unknown embedding model %s, assuming 1536 dimensions", model)

    async def embed(self, text: str) -> EmbeddingResult:
        results = await self.embed_batch([text])
        return results[0]

    async def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """Embed `texts`, splitting into several requests past the API limit.

        Empty strings are rejected by the API, so they are sent as a single
        space.
        """
        if not texts:
            return []

        results: list[EmbeddingResult] = []
        for start in range(0, len(texts), MAX_INPUTS_PER_REQUEST):
            chunk = [t if t.strip() else " " for t in texts[start:start + MAX_INPUTS_PER_REQUEST]]
            response = await self._client.embeddings.create(model=self._model, input=chunk)

            # Usage is reported per request; spread it evenly for bookkeeping
            per_text = response.usage.total_tokens // len(chunk)
            ordered = sorted(response.data, key=lambda d: d.index)
            results.extend(EmbeddingResult(embedding=d.embedding, tokens_used=per_text) for d in ordered)

        return results

    def dimensions(self) -> int:
        return self._MODEL_DIMENSIONS.get(self._model, 1536)
