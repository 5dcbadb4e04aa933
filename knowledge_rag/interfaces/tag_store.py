"""Abstract base class for the persistent knowledge-tag set.

The set is insertion-ordered, duplicate-free, and shared by every worker
and every process pointed at the same backend.  ``add_if_absent`` is the
only mutation and must be atomic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: RedisTagStore, InMemoryTagStore
# Located in: knowledge_rag/providers/tag_store/
class ITagStore(ABC):
    """Contract for tag set backends."""

    @abstractmethod
    async def add_if_absent(self, tag: str) -> bool:
        """Append *tag* unless already present.

        Returns
        -------
        bool
            ``True`` if this call inserted the tag, ``False`` if it existed.

        Raises
        ------
        knowledge_rag.utils.errors.StorageUnavailableError
            If the backend cannot be reached.
        """

    @abstractmethod
    async def list_tags(self) -> list[str]:
        """Return a snapshot of all tags in insertion order."""

    @abstractmethod
    async def contains(self, tag: str) -> bool:
        """Return ``True`` if *tag* is registered."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this backend."""

    async def close(self) -> None:
        """Release connections.  No-op by default."""
