"""Custom exception hierarchy for the knowledge service.

All application exceptions inherit from :class:`KnowledgeBaseError`, which
carries an optional ``provider_name`` so error handlers can identify which
collaborator (e.g. "redis", "chromadb", "git") caused the failure.

The hierarchy is organized by the stage that raises it:

    KnowledgeBaseError  (base -- catch-all)
    +-- InvalidArgumentError      (caller supplied an unusable value)
    +-- ExtractionFailedError     (per-file text extraction)
    |   +-- UnsupportedFormatError
    |   +-- CorruptInputError
    +-- StorageUnavailableError   (tag store / vector index unreachable)
    +-- AuthenticationFailedError (repository credentials rejected)
    +-- RepositoryNotFoundError   (repository URL does not resolve)
    +-- NetworkError              (transport failure talking to a remote)
    +-- LLMError                  (chat model call failure)
    +-- RAGError                  (embedding or vector-store internals)
    +-- ConfigurationError        (startup / missing config)

Per-file extraction errors never escape an ingestion batch; they are
recorded on the batch result.  Everything else propagates to the caller
and is mapped onto an HTTP status by the API middleware.
"""


class KnowledgeBaseError(Exception):
    """Base exception for all knowledge service errors.

    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[redis] Tag store is unreachable``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Caller errors
# ---------------------------------------------------------------------------

class InvalidArgumentError(KnowledgeBaseError):
    """Raised when a caller passes an empty tag, a non-positive ``top_k``, etc."""

    def __init__(
        self,
        message: str = "Invalid argument",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Extraction errors (per file)
# ---------------------------------------------------------------------------

class ExtractionFailedError(KnowledgeBaseError):
    """Raised when a single source cannot be turned into plain text."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class UnsupportedFormatError(ExtractionFailedError):
    """Raised for binary or otherwise unreadable formats (images, archives)."""

    def __init__(
        self,
        message: str = "Unsupported file format",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class CorruptInputError(ExtractionFailedError):
    """Raised when a recognised format fails to parse."""

    def __init__(
        self,
        message: str = "Input is corrupt or truncated",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------

class StorageUnavailableError(KnowledgeBaseError):
    """Raised when the tag store or the vector index cannot be reached.

    Never retried inside the core; the caller decides what to do.
    """

    def __init__(
        self,
        message: str = "Storage backend is unavailable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Repository fetch errors
# ---------------------------------------------------------------------------

class AuthenticationFailedError(KnowledgeBaseError):
    """Raised when the remote rejects the supplied repository credentials."""

    def __init__(
        self,
        message: str = "Repository authentication failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RepositoryNotFoundError(KnowledgeBaseError):
    """Raised when the repository URL does not resolve to a repository."""

    def __init__(
        self,
        message: str = "Repository not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class NetworkError(KnowledgeBaseError):
    """Raised on transport failures: DNS, refused connection, timeout."""

    def __init__(
        self,
        message: str = "Network error while contacting remote",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Model / RAG errors
# ---------------------------------------------------------------------------

class LLMError(KnowledgeBaseError):
    """Raised when a chat model call fails or returns an empty response."""

    def __init__(
        self,
        message: str = "LLM call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RAGError(KnowledgeBaseError):
    """Raised when an embedding or vector-store operation fails internally."""

    def __init__(
        self,
        message: str = "RAG operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(KnowledgeBaseError):
    """Raised when required configuration is missing or invalid."""

    def __init__(
        self,
        message: str = "Configuration error",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
