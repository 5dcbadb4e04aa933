"""In-process knowledge-tag set.

Guarded by an ``asyncio.Lock``, so add-if-absent is atomic within one
event loop.  Used when ``REDIS_URL`` is empty and throughout the tests;
tags do not survive a restart.
"""

from __future__ import annotations

import asyncio

from knowledge_rag.interfaces.tag_store import ITagStore


class InMemoryTagStore(ITagStore):
    """Ordered, duplicate-free tag list held in memory."""

    def __init__(self, initial: list[str] | None = None) -> None:
        self._tags: list[str] = []
        self._members: set[str] = set()
        self._lock = asyncio.Lock()
        for tag in initial or []:
            if tag not in self._members:
                self._tags.append(tag)
                self._members.add(tag)

    async def add_if_absent(self, tag: str) -> bool:
        async with self._lock:
            if tag in self._members:
                return False
            self._tags.append(tag)
            self._members.add(tag)
            return True

    async def list_tags(self) -> list[str]:
        async with self._lock:
            return list(self._tags)

    async def contains(self, tag: str) -> bool:
        return tag in self._members

    def get_provider_name(self) -> str:
        return "memory"
