"""Repository analysis: fetch a Git repository and ingest every file in it.

Drives the :class:`~knowledge_rag.models.repository.FetchState` machine:

    IDLE -> CLONING -> ENUMERATING -> INGESTING -> CLEANING_UP -> DONE

A clone failure goes straight to FAILED (the fetcher has already removed
the directory).  Any later failure, including cancellation, passes
through CLEANING_UP before FAILED, so the working directory never
outlives the call.
"""

from __future__ import annotations

import structlog

from knowledge_rag.models.rag import SourceHandle
from knowledge_rag.models.repository import (
    ALLOWED_TRANSITIONS,
    FetchState,
    RepositoryAnalysisResult,
    RepositoryCredentials,
)
from knowledge_rag.services.ingestion.ingestion_service import IngestionService
from knowledge_rag.services.repository.fetcher import RepositoryFetcher, derive_project_name

logger = structlog.get_logger(logger_name=__name__)


class _StateTracker:
    """Records and logs legal state transitions for one analysis."""

    def __init__(self, repo_url: str, tag: str) -> None:
        self.repo_url = repo_url
        self.tag = tag
        self.state = FetchState.IDLE
        self.history: list[FetchState] = [FetchState.IDLE]

    def advance(self, new_state: FetchState) -> None:
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal repository state transition {self.state} -> {new_state}")
        logger.info(
            "repository_state",
            repo_url=self.repo_url,
            tag=self.tag,
            from_state=self.state.value,
            to_state=new_state.value,
        )
        self.state = new_state
        self.history.append(new_state)


class RepositoryAnalysisService:
    """Clones, ingests and cleans up one repository per call."""

    def __init__(self, fetcher: RepositoryFetcher, ingestion: IngestionService) -> None:
        self._fetcher = fetcher
        self._ingestion = ingestion

    async def analyze(
        self,
        repo_url: str,
        credentials: RepositoryCredentials | None = None,
        tag: str | None = None,
    ) -> RepositoryAnalysisResult:
        """Ingest *repo_url* under *tag* (default: the project name from the URL).

        Raises
        ------
        InvalidArgumentError
            If no tag can be derived from the URL.
        AuthenticationFailedError, RepositoryNotFoundError, NetworkError
            If the clone fails.
        StorageUnavailableError
            Propagated from ingestion.
        """
        tag = tag.strip() if tag and tag.strip() else derive_project_name(repo_url)
        credentials = credentials or RepositoryCredentials()
        tracker = _StateTracker(repo_url, tag)

        tracker.advance(FetchState.CLONING)
        try:
            working_dir = await self._fetcher.clone(repo_url, credentials)
        except BaseException:
            tracker.advance(FetchState.FAILED)
            raise

        try:
            tracker.advance(FetchState.ENUMERATING)
            files = await self._fetcher.enumerate_files(working_dir)

            tracker.advance(FetchState.INGESTING)
            handles = [SourceHandle.from_path(path, root=working_dir) for path in files]
            ingestion = await self._ingestion.ingest(tag, handles)
        except BaseException:
            tracker.advance(FetchState.CLEANING_UP)
            await self._fetcher.cleanup(working_dir)
            tracker.advance(FetchState.FAILED)
            raise

        tracker.advance(FetchState.CLEANING_UP)
        await self._fetcher.cleanup(working_dir)
        tracker.advance(FetchState.DONE)

        return RepositoryAnalysisResult(
            repo_url=repo_url,
            tag=tag,
            state=tracker.state,
            state_history=tracker.history,
            files_found=len(files),
            ingestion=ingestion,
        )
