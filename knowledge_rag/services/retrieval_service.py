"""Tag-filtered retrieval and context assembly for RAG generation."""

from __future__ import annotations

import structlog

from knowledge_rag.interfaces.vector_store_provider import IVectorStoreProvider
from knowledge_rag.utils.errors import InvalidArgumentError

logger = structlog.get_logger(logger_name=__name__)

CONTEXT_SEPARATOR = "\n\n"


class RetrievalService:
    """Looks up the chunks of one knowledge tag most similar to a query.

    Parameters
    ----------
    vector_store:
        The vector index to search.
    default_top_k:
        Used when :meth:`retrieve` is called without ``top_k``.
    """

    def __init__(self, vector_store: IVectorStoreProvider, default_top_k: int = 5) -> None:
        self._vector_store = vector_store
        self._default_top_k = default_top_k

    async def retrieve(self, tag: str, query: str, top_k: int | None = None) -> list[str]:
        """Return the text of up to *top_k* chunks of *tag*, most relevant first.

        Raises
        ------
        InvalidArgumentError
            If *tag* is empty or *top_k* is below 1.
        """
        top_k = self._default_top_k if top_k is None else top_k
        if not tag or not tag.strip():
            raise InvalidArgumentError(message="Knowledge tag must not be empty")
        if top_k < 1:
            raise InvalidArgumentError(message=f"top_k must be >= 1, got {top_k}")

        results = await self._vector_store.search(query, tag, top_k)
        logger.info("retrieval_complete", tag=tag, top_k=top_k, results=len(results))
        return [rc.chunk.text for rc in results]

    @staticmethod
    def build_context(texts: list[str], separator: str = CONTEXT_SEPARATOR) -> str:
        """Concatenate chunk texts in the given order, without deduplication."""
        return separator.join(texts)
