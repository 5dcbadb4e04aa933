"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`
with cosine distance.  Embeddings are computed by the injected
:class:`IEmbeddingProvider`; ChromaDB's own embedding function is never used.

ChromaDB's client is synchronous, so every collection call runs in a worker
thread to keep the event loop free for concurrent retrievals.
"""

from __future__ import annotations

import asyncio
import os
from typing import Any

# Telemetry must be off before chromadb is imported: its bundled PostHog
# client breaks against newer posthog releases.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from knowledge_rag.interfaces.embedding_provider import IEmbeddingProvider
from knowledge_rag.interfaces.vector_store_provider import IVectorStoreProvider
from knowledge_rag.models.rag import KNOWLEDGE_KEY, CorpusStats, DocumentChunk, RetrievedChunk
from knowledge_rag.utils.errors import RAGError, StorageUnavailableError

logger = structlog.get_logger(logger_name=__name__)

# Metadata keys written by this adapter; everything else round-trips into
# DocumentChunk.metadata.
_RESERVED_KEYS = frozenset({KNOWLEDGE_KEY, "parent_document_id", "ordinal", "token_count"})

_PAGE_SIZE = 5000


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Stops ChromaDB from downloading its default ONNX embedding model."""

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "Embeddings are pre-computed; ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Vector index backed by ChromaDB with local persistence.

    Parameters
    ----------
    embedding_provider:
        Embeds chunk text on :meth:`store` and query text on :meth:`search`.
    persist_directory:
        On-disk location of the ChromaDB database.
    collection_name:
        Collection holding every tag's chunks.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "knowledge_corpus",
    ) -> None:
        self._embedding_provider = embedding_provider
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Collections persisted with a different embedding function reject
        # the no-op one; fall back to whatever was persisted.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def store(self, chunks: list[DocumentChunk], batch_size: int = 500) -> int:
        """Embed and upsert *chunks* in slices of *batch_size*."""
        if not chunks:
            return 0

        total_stored = 0
        for start in range(0, len(chunks), batch_size):
            batch = chunks[start : start + batch_size]
            embeddings = await self._embedding_provider.embed([c.text for c in batch])
            if len(embeddings) != len(batch):
                raise RAGError(
                    message=f"Embedding count mismatch: {len(embeddings)} != {len(batch)}",
                    provider_name=self._embedding_provider.get_provider_name(),
                )
            await self._run(
                "store",
                self._collection.upsert,
                ids=[c.chunk_id for c in batch],
                embeddings=embeddings,
                documents=[c.text for c in batch],
                metadatas=[self._chunk_to_metadata(c) for c in batch],
            )
            total_stored += len(batch)

        logger.info(
            "chromadb_store",
            count=total_stored,
            batches=(len(chunks) + batch_size - 1) // batch_size,
        )
        return total_stored

    async def search(self, query: str, tag: str, top_k: int) -> list[RetrievedChunk]:
        """Cosine-similarity search restricted to ``knowledge == tag``.

        Fewer than *top_k* results come back when the tag holds fewer chunks.
        """
        # Collection-wide count is a single SQL COUNT; asking for more
        # results than the collection holds makes HNSW warn.
        collection_size = await self._run("search", self._collection.count)
        if collection_size == 0:
            return []

        query_embedding = await self._embedding_provider.embed_single(query)
        results = await self._run(
            "search",
            self._collection.query,
            query_embeddings=[query_embedding],
            n_results=min(top_k, collection_size),
            where={KNOWLEDGE_KEY: tag},
        )

        if not results["documents"] or not results["documents"][0]:
            return []

        documents = results["documents"][0]
        ids = results["ids"][0]
        metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(documents)
        distances = results["distances"][0] if results["distances"] else [0.0] * len(documents)

        retrieved: list[RetrievedChunk] = []
        for chunk_id, doc_text, meta, distance in zip(ids, documents, metadatas, distances, strict=True):
            similarity = max(0.0, min(1.0, 1.0 - distance))
            retrieved.append(
                RetrievedChunk(
                    chunk=self._metadata_to_chunk(chunk_id, meta or {}, doc_text),
                    similarity_score=similarity,
                )
            )
        retrieved.sort(key=lambda rc: rc.similarity_score, reverse=True)

        logger.info(
            "chromadb_search",
            tag=tag,
            query_length=len(query),
            results_count=len(retrieved),
            top_score=retrieved[0].similarity_score if retrieved else 0.0,
        )
        return retrieved[:top_k]

    async def get_stats(self) -> CorpusStats:
        """Count chunks per tag, paging through metadata to stay under SQLite's bind limit."""
        chunks_by_tag: dict[str, int] = {}
        total = 0
        offset = 0
        while True:
            page = await self._run(
                "stats", self._collection.get, include=["metadatas"], limit=_PAGE_SIZE, offset=offset
            )
            metadatas = page["metadatas"] or []
            if not metadatas:
                break
            for meta in metadatas:
                tag = str((meta or {}).get(KNOWLEDGE_KEY, ""))
                chunks_by_tag[tag] = chunks_by_tag.get(tag, 0) + 1
            total += len(metadatas)
            if len(metadatas) < _PAGE_SIZE:
                break
            offset += _PAGE_SIZE
        return CorpusStats(total_chunks=total, chunks_by_tag=chunks_by_tag)

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        try:
            self._collection.count()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(self, operation: str, fn: Any, **kwargs: Any) -> Any:
        """Run a blocking collection call in a thread, translating failures."""
        try:
            return await asyncio.to_thread(fn, **kwargs)
        except OSError as exc:
            raise StorageUnavailableError(
                message=f"ChromaDB {operation} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except Exception as exc:
            raise RAGError(
                message=f"ChromaDB {operation} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    @staticmethod
    def _chunk_to_metadata(chunk: DocumentChunk) -> dict[str, Any]:
        """Flatten a chunk into ChromaDB metadata; the typed tag always wins."""
        meta: dict[str, Any] = {k: v for k, v in chunk.metadata.items() if k not in _RESERVED_KEYS}
        meta["parent_document_id"] = chunk.parent_document_id
        meta["ordinal"] = chunk.ordinal
        meta["token_count"] = chunk.token_count
        meta[KNOWLEDGE_KEY] = chunk.tag
        return meta

    @staticmethod
    def _metadata_to_chunk(chunk_id: str, meta: dict[str, Any], text: str) -> DocumentChunk:
        extra = {k: str(v) for k, v in meta.items() if k not in _RESERVED_KEYS}
        return DocumentChunk(
            chunk_id=chunk_id,
            parent_document_id=str(meta.get("parent_document_id", "")),
            ordinal=int(meta.get("ordinal", 0)),
            text=text,
            tag=str(meta.get(KNOWLEDGE_KEY, "")) or "unknown",
            token_count=int(meta.get("token_count", 0)),
            metadata=extra,
        )
