"""Abstract base class for text-embedding service providers.

Implementations wrap OpenAI ``text-embedding-3-small`` or Nomic
``nomic-embed-text`` served locally by Ollama.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: OpenAIEmbeddingProvider, NomicEmbeddingProvider
# Located in: knowledge_rag/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the vector index."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.  Implementations batch
            internally if the underlying API has a per-call limit.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.

        Raises
        ------
        knowledge_rag.utils.errors.RAGError
            If the embedding API call fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text (e.g. a search query)."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and reachable."""
