"""Abstract base class for version-control clients."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from knowledge_rag.models.repository import RepositoryCredentials


# Concrete implementation: GitCLIClient (knowledge_rag/providers/vcs/)
class IVCSClient(ABC):
    """Clones a remote repository into a local directory."""

    @abstractmethod
    async def clone(self, repo_url: str, destination: Path, credentials: RepositoryCredentials) -> None:
        """Clone *repo_url* into *destination*, which must be empty.

        Raises
        ------
        knowledge_rag.utils.errors.AuthenticationFailedError
            The remote rejected the credentials.
        knowledge_rag.utils.errors.RepositoryNotFoundError
            The URL does not name a repository.
        knowledge_rag.utils.errors.NetworkError
            Any transport failure, including a clone timeout.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this client."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the client's tooling is installed."""
