"""Abstract base class for the vector index.

The index owns embedding: callers hand it chunks and query strings, and
it calls an injected :class:`IEmbeddingProvider` itself.  Every stored
chunk carries its knowledge tag under the ``knowledge`` metadata key and
searches are always filtered on it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from knowledge_rag.models.rag import CorpusStats, DocumentChunk, RetrievedChunk


# Concrete implementation: ChromaDBProvider (knowledge_rag/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for vector-store services used by ingestion and retrieval."""

    @abstractmethod
    async def store(self, chunks: list[DocumentChunk]) -> int:
        """Embed and persist *chunks*.

        Parameters
        ----------
        chunks:
            Chunks to store.  ``chunk_id`` is the primary key, so storing
            the same chunk twice overwrites rather than duplicates.

        Returns
        -------
        int
            Number of chunks written.

        Raises
        ------
        knowledge_rag.utils.errors.StorageUnavailableError
            If the backing store cannot be reached.
        knowledge_rag.utils.errors.RAGError
            If embedding or the write itself fails.
        """

    @abstractmethod
    async def search(self, query: str, tag: str, top_k: int) -> list[RetrievedChunk]:
        """Return up to *top_k* chunks of *tag*, most similar first.

        Parameters
        ----------
        query:
            Natural-language query to embed.
        tag:
            Only chunks whose ``knowledge`` equals this value are eligible.
        top_k:
            Upper bound on results.

        Returns
        -------
        list[RetrievedChunk]
            Possibly empty; ordered by descending similarity.
        """

    @abstractmethod
    async def get_stats(self) -> CorpusStats:
        """Return the total chunk count and the count per knowledge tag."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this vector store."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store is usable."""
