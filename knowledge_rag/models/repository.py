"""Models for repository fetch and analysis.

:class:`FetchState` is the state machine driven by the repository
analysis service:

    IDLE -> CLONING -> ENUMERATING -> INGESTING -> CLEANING_UP -> DONE
              |             \\             \\
              v              +-------------+--> CLEANING_UP -> FAILED
            FAILED (working directory already removed)
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from knowledge_rag.models.rag import IngestionResult


class FetchState(str, Enum):  # noqa: UP042
    """Phases of a repository analysis."""

    IDLE = "IDLE"
    CLONING = "CLONING"
    ENUMERATING = "ENUMERATING"
    INGESTING = "INGESTING"
    CLEANING_UP = "CLEANING_UP"
    DONE = "DONE"
    FAILED = "FAILED"


# Legal transitions; anything else is a programming error.
ALLOWED_TRANSITIONS: dict[FetchState, frozenset[FetchState]] = {
    FetchState.IDLE: frozenset({FetchState.CLONING}),
    FetchState.CLONING: frozenset({FetchState.ENUMERATING, FetchState.FAILED}),
    FetchState.ENUMERATING: frozenset({FetchState.INGESTING, FetchState.CLEANING_UP}),
    FetchState.INGESTING: frozenset({FetchState.CLEANING_UP}),
    FetchState.CLEANING_UP: frozenset({FetchState.DONE, FetchState.FAILED}),
    FetchState.DONE: frozenset(),
    FetchState.FAILED: frozenset(),
}


class RepositoryCredentials(BaseModel):
    """Username/token pair for an HTTPS remote.  Both may be empty for public repos."""

    model_config = ConfigDict(frozen=True)

    username: str = ""
    token: SecretStr = SecretStr("")

    @property
    def is_anonymous(self) -> bool:
        return not self.username and not self.token.get_secret_value()


class FetchedRepository(BaseModel):
    """A cloned working tree and the regular files found in it."""

    model_config = ConfigDict(frozen=True)

    repo_url: str
    working_dir: Path
    files: list[Path] = Field(default_factory=list)


class RepositoryAnalysisResult(BaseModel):
    """What the analyze-repository operation returns to its caller."""

    model_config = ConfigDict(frozen=True)

    repo_url: str
    tag: str
    state: FetchState
    state_history: list[FetchState] = Field(default_factory=list)
    files_found: int = 0
    ingestion: IngestionResult | None = None
