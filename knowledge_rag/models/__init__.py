"""Pydantic data models for documents, chunks, batch results and repository fetches."""

from knowledge_rag.models.rag import (
    KNOWLEDGE_KEY,
    CorpusStats,
    Document,
    DocumentChunk,
    FileFailure,
    IngestionResult,
    RetrievedChunk,
    SourceHandle,
)
from knowledge_rag.models.repository import (
    FetchedRepository,
    FetchState,
    RepositoryAnalysisResult,
    RepositoryCredentials,
)

__all__ = [
    "KNOWLEDGE_KEY",
    "CorpusStats",
    "Document",
    "DocumentChunk",
    "FetchState",
    "FetchedRepository",
    "FileFailure",
    "IngestionResult",
    "RepositoryAnalysisResult",
    "RepositoryCredentials",
    "RetrievedChunk",
    "SourceHandle",
]
