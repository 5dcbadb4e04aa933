"""Utility modules for the knowledge service.

- **errors** -- Exception hierarchy rooted at KnowledgeBaseError.
- **concurrency** -- Semaphore-bounded gather used by the ingestion pool.
- **logging** -- structlog setup with console/JSON dual rendering.
"""

from knowledge_rag.utils.concurrency import throttled_gather
from knowledge_rag.utils.errors import (
    AuthenticationFailedError,
    ConfigurationError,
    CorruptInputError,
    ExtractionFailedError,
    InvalidArgumentError,
    KnowledgeBaseError,
    LLMError,
    NetworkError,
    RAGError,
    RepositoryNotFoundError,
    StorageUnavailableError,
    UnsupportedFormatError,
)
from knowledge_rag.utils.logging import configure_logging, get_logger

__all__ = [
    "AuthenticationFailedError",
    "ConfigurationError",
    "CorruptInputError",
    "ExtractionFailedError",
    "InvalidArgumentError",
    "KnowledgeBaseError",
    "LLMError",
    "NetworkError",
    "RAGError",
    "RepositoryNotFoundError",
    "StorageUnavailableError",
    "UnsupportedFormatError",
    "configure_logging",
    "get_logger",
    "throttled_gather",
]
