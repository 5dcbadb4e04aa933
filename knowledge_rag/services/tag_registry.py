"""Knowledge tag registry.

Thin service over an :class:`ITagStore` backend that validates tags before
they reach the store.  It is passed explicitly to every component that
needs it; there is no module-level registry.
"""

from __future__ import annotations

import structlog

from knowledge_rag.interfaces.tag_store import ITagStore
from knowledge_rag.utils.errors import InvalidArgumentError

logger = structlog.get_logger(logger_name=__name__)


class TagRegistry:
    """Ordered, duplicate-free set of knowledge tags."""

    def __init__(self, store: ITagStore) -> None:
        self._store = store

    async def add_if_absent(self, tag: str) -> bool:
        """Register *tag*; return ``True`` only for the call that inserted it."""
        self._require(tag)
        return await self._store.add_if_absent(tag)

    async def list_tags(self) -> list[str]:
        """Return every registered tag in insertion order."""
        return await self._store.list_tags()

    async def exists(self, tag: str) -> bool:
        self._require(tag)
        return await self._store.contains(tag)

    @property
    def backend_name(self) -> str:
        return self._store.get_provider_name()

    async def close(self) -> None:
        await self._store.close()

    @staticmethod
    def _require(tag: str) -> None:
        if not tag or not tag.strip():
            raise InvalidArgumentError(message="Knowledge tag must not be empty")
