"""Data models for the ingestion and retrieval pipeline.

Flow of objects through a batch:

    SourceHandle --(extract)--> Document --(split)--> DocumentChunk*
                                                      --(store)--> vector index

Every model is a frozen Pydantic v2 model.  The knowledge tag is a typed
field on both :class:`Document` and :class:`DocumentChunk`; the auxiliary
``metadata`` map is free-form and never consulted for filtering.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Metadata key the vector index filters on.
KNOWLEDGE_KEY = "knowledge"


# ---------------------------------------------------------------------------
# SourceHandle -- one input file, on disk or in memory.
# ---------------------------------------------------------------------------
class SourceHandle(BaseModel):
    """A single file to ingest.

    Repository walks produce handles with a ``path``; uploads produce
    handles with in-memory ``content``.  Exactly one of the two is set.
    """

    model_config = ConfigDict(frozen=True)

    source_uri: str = Field(description="Stable identifier for the source (path or upload name).")
    filename: str = Field(description="File name used for format detection.")
    path: Path | None = Field(default=None, description="Location on disk, if any.")
    content: bytes | None = Field(default=None, description="Raw bytes, if uploaded.")

    @model_validator(mode="after")
    def _exactly_one_body(self) -> SourceHandle:
        if (self.path is None) == (self.content is None):
            raise ValueError("SourceHandle needs exactly one of path or content")
        return self

    @classmethod
    def from_path(cls, path: Path, root: Path | None = None) -> SourceHandle:
        """Build a handle for a file on disk, naming it relative to *root* when given."""
        uri = str(path.relative_to(root)) if root is not None else str(path)
        return cls(source_uri=uri, filename=path.name, path=path)

    @classmethod
    def from_bytes(cls, filename: str, content: bytes) -> SourceHandle:
        return cls(source_uri=filename, filename=filename, content=content)

    def read_bytes(self) -> bytes:
        if self.content is not None:
            return self.content
        if self.path is not None:
            return self.path.read_bytes()
        raise ValueError(f"SourceHandle {self.source_uri!r} has neither path nor content")


# ---------------------------------------------------------------------------
# Document -- extracted text of one source, discarded after splitting.
# ---------------------------------------------------------------------------
class Document(BaseModel):
    """Plain text extracted from one source, carrying its knowledge tag."""

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(description="Random id assigned when the source is ingested.")
    source_uri: str
    raw_text: str
    tag: str = Field(min_length=1, description="Knowledge tag the document belongs to.")
    metadata: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# DocumentChunk -- the unit stored in the vector index.
# ---------------------------------------------------------------------------
class DocumentChunk(BaseModel):
    """A bounded token window of a parent document.

    Ordinals are contiguous from 0 within a parent.  ``tag`` is copied
    verbatim from the parent; the same value is written into
    ``metadata["knowledge"]`` when the chunk is stored.
    """

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Deterministic id: uuid5(parent_document_id, ordinal).")
    parent_document_id: str
    ordinal: int = Field(ge=0)
    text: str
    tag: str = Field(min_length=1)
    token_count: int = Field(default=0, ge=0)
    metadata: dict[str, str] = Field(default_factory=dict)


class RetrievedChunk(BaseModel):
    """A chunk returned from a similarity search."""

    model_config = ConfigDict(frozen=True)

    chunk: DocumentChunk
    similarity_score: float = Field(ge=0.0, le=1.0)


# ---------------------------------------------------------------------------
# Batch results
# ---------------------------------------------------------------------------
class FileFailure(BaseModel):
    """One source that did not make it into the index."""

    model_config = ConfigDict(frozen=True)

    source: str
    stage: str = Field(description='Stage that failed: "extract", "split", "store" or "unknown".')
    error_type: str
    message: str


class IngestionResult(BaseModel):
    """Outcome of one ingestion batch.  Returned to the caller, never persisted."""

    model_config = ConfigDict(frozen=True)

    tag: str
    files_processed: int = Field(default=0, ge=0)
    files_failed: int = Field(default=0, ge=0)
    chunks_stored: int = Field(default=0, ge=0)
    failures: list[FileFailure] = Field(default_factory=list)
    tag_registered: bool = False
    elapsed: float = Field(default=0.0, ge=0.0, description="Wall-clock seconds.")


class CorpusStats(BaseModel):
    """Chunk counts per knowledge tag, served by ``GET /rag/stats`` and the ``stats`` CLI command."""

    model_config = ConfigDict(frozen=True)

    total_chunks: int = 0
    chunks_by_tag: dict[str, int] = Field(default_factory=dict)
