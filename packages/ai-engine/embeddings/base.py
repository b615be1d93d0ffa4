"""Embedding adapter interface.

The file index only needs vectors of a fixed width; which provider makes
them is a configuration detail.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class EmbeddingResult:
    embedding: list[float]
    tokens_used: int


class BaseEmbeddingAdapter(ABC):

    @abstractmethod
    async def embed(self, text: str) -> EmbeddingResult:
        """Embed one text."""
        ...

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[EmbeddingResult]:
        """Embed several texts; results come back in input order."""
        ...

    @abstractmethod
    def dimensions(self) -> int:
        ...
