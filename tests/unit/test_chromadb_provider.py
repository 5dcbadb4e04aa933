"""Unit tests for the ChromaDB vector store provider against a real on-disk collection."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from knowledge_rag.models.rag import KNOWLEDGE_KEY, DocumentChunk
from knowledge_rag.providers.vector_store.chromadb_provider import ChromaDBProvider
from knowledge_rag.utils.errors import RAGError
from tests.conftest import MockEmbeddingProvider


def _make_chunk(
    chunk_id: str,
    text: str,
    tag: str = "handbook",
    ordinal: int = 0,
    metadata: dict[str, str] | None = None,
) -> DocumentChunk:
    return DocumentChunk(
        chunk_id=chunk_id,
        parent_document_id="doc-1",
        ordinal=ordinal,
        text=text,
        tag=tag,
        token_count=len(text.split()),
        metadata=metadata if metadata is not None else {"source": "guide.md", KNOWLEDGE_KEY: tag},
    )


@pytest.fixture()
def provider(tmp_path: Path) -> ChromaDBProvider:
    return ChromaDBProvider(
        embedding_provider=MockEmbeddingProvider(),
        persist_directory=str(tmp_path / "chroma"),
        collection_name="test_corpus",
    )


class TestChromaDBProvider:
    @pytest.mark.asyncio
    async def test_store_and_search_round_trip(self, provider: ChromaDBProvider) -> None:
        chunks = [_make_chunk(f"c{i}", f"handbook section {i}", ordinal=i) for i in range(3)]

        assert await provider.store(chunks) == 3

        results = await provider.search("handbook section 1", "handbook", top_k=5)
        assert len(results) == 3
        # Identical text embeds identically, so it ranks first.
        assert results[0].chunk.text == "handbook section 1"
        assert results[0].similarity_score == pytest.approx(1.0, abs=1e-4)
        assert results[0].chunk.tag == "handbook"
        assert results[0].chunk.metadata["source"] == "guide.md"
        scores = [r.similarity_score for r in results]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_search_is_scoped_to_tag(self, provider: ChromaDBProvider) -> None:
        await provider.store([_make_chunk("a", "alpha text", tag="alpha")])
        await provider.store([_make_chunk("b", "beta text", tag="beta")])

        results = await provider.search("alpha text", "beta", top_k=5)

        assert [r.chunk.chunk_id for r in results] == ["b"]

    @pytest.mark.asyncio
    async def test_search_unknown_tag_is_empty(self, provider: ChromaDBProvider) -> None:
        await provider.store([_make_chunk("a", "alpha text")])
        assert await provider.search("alpha", "missing", top_k=5) == []

    @pytest.mark.asyncio
    async def test_search_respects_top_k(self, provider: ChromaDBProvider) -> None:
        await provider.store([_make_chunk(f"c{i}", f"text {i}", ordinal=i) for i in range(10)])

        results = await provider.search("text", "handbook", top_k=5)

        assert len(results) == 5

    @pytest.mark.asyncio
    async def test_typed_tag_overrides_stale_metadata(self, provider: ChromaDBProvider) -> None:
        chunk = _make_chunk("x", "some text", tag="right", metadata={KNOWLEDGE_KEY: "wrong"})
        await provider.store([chunk])

        stats = await provider.get_stats()
        assert stats.chunks_by_tag == {"right": 1}

    @pytest.mark.asyncio
    async def test_upsert_is_idempotent(self, provider: ChromaDBProvider) -> None:
        chunk = _make_chunk("same-id", "text")
        await provider.store([chunk])
        await provider.store([chunk])

        assert (await provider.get_stats()).total_chunks == 1

    @pytest.mark.asyncio
    async def test_stats_count_per_tag(self, provider: ChromaDBProvider) -> None:
        await provider.store([_make_chunk("a1", "a", tag="alpha"), _make_chunk("a2", "b", tag="alpha", ordinal=1)])
        await provider.store([_make_chunk("b1", "c", tag="beta")])

        stats = await provider.get_stats()
        assert stats.total_chunks == 3
        assert stats.chunks_by_tag == {"alpha": 2, "beta": 1}

    @pytest.mark.asyncio
    async def test_search_with_fewer_tag_chunks_than_top_k(self, provider: ChromaDBProvider) -> None:
        await provider.store([_make_chunk(f"a{i}", f"alpha {i}", tag="alpha", ordinal=i) for i in range(6)])
        await provider.store([_make_chunk("b0", "beta 0", tag="beta")])

        results = await provider.search("beta 0", "beta", top_k=5)

        assert [r.chunk.chunk_id for r in results] == ["b0"]

    @pytest.mark.asyncio
    async def test_search_empty_collection(self, provider: ChromaDBProvider) -> None:
        assert await provider.search("anything", "handbook", top_k=5) == []

    @pytest.mark.asyncio
    async def test_store_empty_list(self, provider: ChromaDBProvider) -> None:
        assert await provider.store([]) == 0

    @pytest.mark.asyncio
    async def test_embedding_count_mismatch(self, tmp_path: Path) -> None:
        embedding = MagicMock(spec=MockEmbeddingProvider)
        embedding.embed = AsyncMock(return_value=[])
        embedding.get_provider_name.return_value = "mock"
        provider = ChromaDBProvider(embedding, persist_directory=str(tmp_path / "c2"))

        with pytest.raises(RAGError):
            await provider.store([_make_chunk("a", "text")])

    def test_is_available(self, provider: ChromaDBProvider) -> None:
        assert provider.is_available() is True
        assert provider.get_provider_name() == "chromadb"
