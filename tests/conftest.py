"""Shared pytest fixtures for the knowledge service test suite."""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

# knowledge_rag.main configures structlog at import time, binding the current
# sys.stderr; import it during collection so that stream is pytest's
# session-wide capture rather than a per-test one that gets closed.
import knowledge_rag.main  # noqa: F401

from knowledge_rag.interfaces.embedding_provider import IEmbeddingProvider
from knowledge_rag.interfaces.text_extractor import ITextExtractor
from knowledge_rag.interfaces.vcs_client import IVCSClient
from knowledge_rag.interfaces.vector_store_provider import IVectorStoreProvider
from knowledge_rag.models.rag import KNOWLEDGE_KEY, CorpusStats, DocumentChunk, RetrievedChunk, SourceHandle
from knowledge_rag.models.repository import RepositoryCredentials
from knowledge_rag.providers.tag_store.memory_tag_store import InMemoryTagStore
from knowledge_rag.services.ingestion.chunker import TokenWindowChunker
from knowledge_rag.services.tag_registry import TagRegistry
from knowledge_rag.utils.errors import (
    AuthenticationFailedError,
    CorruptInputError,
    KnowledgeBaseError,
    StorageUnavailableError,
)

# ---------------------------------------------------------------------------
# Deterministic embeddings
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 64


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic unit vector by hashing *text*.

    Each hash byte is mapped into ``[-1, 1]`` so the vector never
    contains NaN or infinity.
    """
    raw = hashlib.sha256(text.encode("utf-8")).digest()
    while len(raw) < dim:
        raw += hashlib.sha256(raw).digest()
    values = [b / 127.5 - 1.0 for b in raw[:dim]]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests."""

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [_hash_to_vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return _hash_to_vector(text)

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


class MockVectorStore(IVectorStoreProvider):
    """In-memory vector store backed by a dict keyed on chunk id.

    ``search`` filters on the ``knowledge`` metadata value and ranks by the
    dot product of hash vectors.  Set ``fail_with`` to make ``store`` raise,
    or ``fail_sources`` to make it raise only for chunks from those sources.
    """

    def __init__(self) -> None:
        self._store: dict[str, tuple[DocumentChunk, list[float]]] = {}
        self._embedding = MockEmbeddingProvider()
        self.fail_with: KnowledgeBaseError | None = None
        self.fail_sources: set[str] = set()
        self.store_calls = 0

    async def store(self, chunks: list[DocumentChunk]) -> int:
        self.store_calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        if any(c.metadata.get("source") in self.fail_sources for c in chunks):
            raise StorageUnavailableError(message="store unreachable", provider_name="mock")
        vectors = await self._embedding.embed([c.text for c in chunks])
        for chunk, vec in zip(chunks, vectors, strict=True):
            self._store[chunk.chunk_id] = (chunk, vec)
        return len(chunks)

    async def search(self, query: str, tag: str, top_k: int) -> list[RetrievedChunk]:
        query_vec = await self._embedding.embed_single(query)
        scored = []
        for chunk, vec in self._store.values():
            if chunk.metadata.get(KNOWLEDGE_KEY) != tag:
                continue
            dot = sum(a * b for a, b in zip(query_vec, vec, strict=True))
            scored.append((max(0.0, min(1.0, (dot + 1.0) / 2.0)), chunk))
        scored.sort(key=lambda item: item[0], reverse=True)
        return [RetrievedChunk(chunk=c, similarity_score=s) for s, c in scored[:top_k]]

    async def get_stats(self) -> CorpusStats:
        by_tag: dict[str, int] = {}
        for chunk, _ in self._store.values():
            key = chunk.metadata.get(KNOWLEDGE_KEY, "")
            by_tag[key] = by_tag.get(key, 0) + 1
        return CorpusStats(total_chunks=len(self._store), chunks_by_tag=by_tag)

    def get_provider_name(self) -> str:
        return "mock-vector-store"

    def is_available(self) -> bool:
        return True

    @property
    def chunks(self) -> list[DocumentChunk]:
        return [chunk for chunk, _ in self._store.values()]


class FakeExtractor(ITextExtractor):
    """Decodes handle bytes as UTF-8; raises ``CorruptInputError`` for listed filenames."""

    def __init__(self, corrupt: set[str] | None = None) -> None:
        self.corrupt = corrupt or set()

    async def extract(self, handle: SourceHandle) -> tuple[str, dict[str, str]]:
        if handle.filename in self.corrupt:
            raise CorruptInputError(message=f"cannot parse {handle.filename}", provider_name="fake")
        return handle.read_bytes().decode("utf-8"), {"filename": handle.filename, "format": "text"}


class FakeVCS(IVCSClient):
    """Writes a fixed file tree into the destination instead of cloning.

    Set ``fail_with`` to raise after a partial write, the way a failed
    ``git clone`` can leave debris behind.
    """

    def __init__(self, files: dict[str, str] | None = None) -> None:
        self.files = files if files is not None else {"README.md": "# Widgets\n\nWidgets do things."}
        self.fail_with: KnowledgeBaseError | None = None
        self.calls: list[tuple[str, Path, RepositoryCredentials]] = []

    async def clone(self, repo_url: str, destination: Path, credentials: RepositoryCredentials) -> None:
        self.calls.append((repo_url, destination, credentials))
        destination.mkdir(parents=True, exist_ok=True)
        if self.fail_with is not None:
            (destination / ".partial").write_text("debris")
            raise self.fail_with
        for rel, content in self.files.items():
            target = destination / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")

    def get_provider_name(self) -> str:
        return "fake-vcs"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_vector_store() -> MockVectorStore:
    return MockVectorStore()


@pytest.fixture
def tag_registry() -> TagRegistry:
    return TagRegistry(InMemoryTagStore())


@pytest.fixture
def small_chunker() -> TokenWindowChunker:
    """Chunker with tiny windows so short test texts produce several chunks."""
    return TokenWindowChunker(max_tokens=20, overlap_tokens=5, min_chunk_tokens=8)


@pytest.fixture
def bad_credentials_vcs() -> FakeVCS:
    vcs = FakeVCS()
    vcs.fail_with = AuthenticationFailedError(message="Authentication failed", provider_name="git")
    return vcs
