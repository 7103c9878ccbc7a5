"""Abstract base class for text-embedding service providers.

Defines the contract for turning text into fixed-length vectors.  The
retrieval engine and ingestion service depend only on this contract; the
concrete adapter wraps an external embedding model.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementation: OpenAIEmbeddingProvider (autoreply/providers/embedding/)
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.

        Returns
        -------
        list[list[float]]
            Vectors corresponding positionally to *texts*, each of length
            :meth:`get_dimension`.

        Raises
        ------
        autoreply.utils.errors.EmbeddingUnavailableError
            If the embedding service cannot be reached or rejects the call.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for one text (e.g. a search query)."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the fixed dimensionality of the vectors this provider emits."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (credentials present)."""
