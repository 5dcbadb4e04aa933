"""Orchestrator for batch ingestion under one knowledge tag.

Per source the pipeline runs **extract -> split -> tag -> store**:

    1. ITextExtractor       -- file bytes to plain text
    2. TokenWindowChunker   -- text to bounded, overlapping token windows
    3. tagging              -- typed ``tag`` field plus ``knowledge`` metadata
    4. IVectorStoreProvider -- embed and persist

Sources are processed by a bounded pool of asyncio workers.  A failure in
any one source is recorded on the :class:`IngestionResult` and the rest of
the batch carries on; nothing already stored is rolled back.  Once every
source has finished, the tag is registered exactly once, and only if at
least one source made it into the index.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import TYPE_CHECKING

import structlog

from knowledge_rag.models.rag import KNOWLEDGE_KEY, Document, DocumentChunk, FileFailure, IngestionResult
from knowledge_rag.utils.concurrency import throttled_gather
from knowledge_rag.utils.errors import (
    ExtractionFailedError,
    InvalidArgumentError,
    KnowledgeBaseError,
    StorageUnavailableError,
)

if TYPE_CHECKING:
    from knowledge_rag.interfaces.text_extractor import ITextExtractor
    from knowledge_rag.interfaces.vector_store_provider import IVectorStoreProvider
    from knowledge_rag.models.rag import SourceHandle
    from knowledge_rag.services.ingestion.chunker import TokenWindowChunker
    from knowledge_rag.services.tag_registry import TagRegistry

logger = structlog.get_logger(logger_name=__name__)


class _FileOutcome:
    """Result of one worker: either a chunk count or a failure."""

    __slots__ = ("source", "chunks_stored", "failure", "error")

    def __init__(
        self,
        source: str,
        chunks_stored: int = 0,
        failure: FileFailure | None = None,
        error: KnowledgeBaseError | None = None,
    ) -> None:
        self.source = source
        self.chunks_stored = chunks_stored
        self.failure = failure
        self.error = error


class IngestionService:
    """Runs ingestion batches with partial-failure tolerance.

    Parameters
    ----------
    extractor:
        Turns each source into plain text.
    chunker:
        Splits extracted text into token windows.
    vector_store:
        Embeds and persists chunks.
    tag_registry:
        Records the tag once the batch has stored something.
    max_workers:
        Upper bound on sources processed at the same time.
    batch_timeout:
        Seconds before the whole batch is cancelled; ``None`` or ``0`` disables it.
    """

    def __init__(
        self,
        extractor: ITextExtractor,
        chunker: TokenWindowChunker,
        vector_store: IVectorStoreProvider,
        tag_registry: TagRegistry,
        max_workers: int = 4,
        batch_timeout: float | None = None,
    ) -> None:
        self._extractor = extractor
        self._chunker = chunker
        self._vector_store = vector_store
        self._tag_registry = tag_registry
        self._max_workers = max(1, max_workers)
        self._batch_timeout = batch_timeout or None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(self, tag: str, sources: list[SourceHandle]) -> IngestionResult:
        """Ingest *sources* under *tag*.

        Returns
        -------
        IngestionResult
            Per-batch counters and the list of per-file failures.

        Raises
        ------
        InvalidArgumentError
            If *tag* is empty.
        StorageUnavailableError
            If the tag registry is unreachable, or if every source failed
            because storage was unreachable.
        asyncio.CancelledError
            If the caller cancels; in-flight workers are cancelled too.
        asyncio.TimeoutError
            If the batch outlives ``batch_timeout``.
        """
        if not tag or not tag.strip():
            raise InvalidArgumentError(message="Knowledge tag must not be empty")

        if self._batch_timeout:
            return await asyncio.wait_for(self._ingest(tag, sources), timeout=self._batch_timeout)
        return await self._ingest(tag, sources)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _ingest(self, tag: str, sources: list[SourceHandle]) -> IngestionResult:
        start = time.monotonic()
        logger.info("ingestion_started", tag=tag, files=len(sources), workers=self._max_workers)

        semaphore = asyncio.Semaphore(self._max_workers)
        raw = await throttled_gather(
            [self._process_file(tag, handle) for handle in sources],
            semaphore=semaphore,
            return_exceptions=True,
        )

        outcomes: list[_FileOutcome] = []
        for handle, item in zip(sources, raw, strict=True):
            if isinstance(item, asyncio.CancelledError):
                raise item
            if isinstance(item, BaseException):
                # Anything the worker did not classify is still a per-file failure.
                if not isinstance(item, Exception):
                    raise item
                logger.error(
                    "ingestion_file_unexpected_error",
                    tag=tag,
                    source=handle.source_uri,
                    error_type=type(item).__name__,
                    error=str(item),
                )
                item = _FileOutcome(
                    source=handle.source_uri,
                    failure=FileFailure(
                        source=handle.source_uri,
                        stage="unknown",
                        error_type=type(item).__name__,
                        message=str(item),
                    ),
                )
            outcomes.append(item)

        succeeded = [o for o in outcomes if o.failure is None]
        failed = [o for o in outcomes if o.failure is not None]

        if failed and not succeeded and all(isinstance(o.error, StorageUnavailableError) for o in failed):
            logger.error("ingestion_storage_unavailable", tag=tag, files=len(failed))
            raise StorageUnavailableError(
                message=f"Storage unreachable for every file of tag '{tag}'",
                provider_name=failed[0].error.provider_name if failed[0].error else None,
            )

        # Files that yielded no text count as processed but never register a tag.
        chunks_stored = sum(o.chunks_stored for o in succeeded)
        tag_registered = False
        if chunks_stored > 0:
            await self._tag_registry.add_if_absent(tag)
            tag_registered = True

        result = IngestionResult(
            tag=tag,
            files_processed=len(succeeded),
            files_failed=len(failed),
            chunks_stored=chunks_stored,
            failures=[o.failure for o in failed if o.failure is not None],
            tag_registered=tag_registered,
            elapsed=round(time.monotonic() - start, 3),
        )
        logger.info(
            "ingestion_complete",
            tag=tag,
            files_processed=result.files_processed,
            files_failed=result.files_failed,
            chunks=result.chunks_stored,
            tag_registered=tag_registered,
            time_s=result.elapsed,
        )
        return result

    async def _process_file(self, tag: str, handle: SourceHandle) -> _FileOutcome:
        """Run one source through the pipeline, converting known errors to a failure."""
        stage = "extract"
        try:
            text, format_metadata = await self._extractor.extract(handle)

            stage = "split"
            document = Document(
                document_id=str(uuid.uuid4()),
                source_uri=handle.source_uri,
                raw_text=text,
                tag=tag,
                metadata={"source": handle.source_uri, **format_metadata},
            )
            chunks = self._tag_chunks(self._chunker.split(document), tag)

            stage = "store"
            stored = await self._vector_store.store(chunks) if chunks else 0
        except KnowledgeBaseError as exc:
            log = logger.warning if isinstance(exc, ExtractionFailedError) else logger.error
            log(
                "ingestion_file_failed",
                tag=tag,
                source=handle.source_uri,
                stage=stage,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return _FileOutcome(
                source=handle.source_uri,
                failure=FileFailure(
                    source=handle.source_uri,
                    stage=stage,
                    error_type=type(exc).__name__,
                    message=exc.message,
                ),
                error=exc,
            )

        logger.debug("ingestion_file_complete", tag=tag, source=handle.source_uri, chunks=stored)
        return _FileOutcome(source=handle.source_uri, chunks_stored=stored)

    @staticmethod
    def _tag_chunks(chunks: list[DocumentChunk], tag: str) -> list[DocumentChunk]:
        """Stamp *tag* into each chunk's metadata, replacing any prior ``knowledge`` value."""
        return [
            chunk.model_copy(update={"tag": tag, "metadata": {**chunk.metadata, KNOWLEDGE_KEY: tag}})
            for chunk in chunks
        ]
