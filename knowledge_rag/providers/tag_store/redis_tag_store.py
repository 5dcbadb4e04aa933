"""Redis-backed knowledge-tag set.

Tags live in a single Redis list (key ``ragTag`` by default) so that
insertion order is kept.  Add-if-absent runs as one Lua script, which
Redis executes atomically, so concurrent workers in any number of
processes never append the same tag twice.
"""

from __future__ import annotations

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from knowledge_rag.interfaces.tag_store import ITagStore
from knowledge_rag.utils.errors import StorageUnavailableError

logger = structlog.get_logger(logger_name=__name__)

# LPOS needs Redis >= 6.0.6.
_ADD_IF_ABSENT_LUA = """
if redis.call('LPOS', KEYS[1], ARGV[1]) then
    return 0
end
redis.call('RPUSH', KEYS[1], ARGV[1])
return 1
"""


class RedisTagStore(ITagStore):
    """Tag set stored as a Redis list.

    Parameters
    ----------
    client:
        A ``redis.asyncio`` client created with ``decode_responses=True``.
    key:
        List key holding the tags.
    """

    def __init__(self, client: aioredis.Redis, key: str = "ragTag") -> None:
        self._client = client
        self._key = key
        self._add_script = client.register_script(_ADD_IF_ABSENT_LUA)

    @classmethod
    def from_url(cls, url: str, key: str = "ragTag", socket_timeout: float = 10.0) -> RedisTagStore:
        """Create a store with its own connection pool."""
        client = aioredis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client, key=key)

    async def add_if_absent(self, tag: str) -> bool:
        try:
            inserted = await self._add_script(keys=[self._key], args=[tag])
        except RedisError as exc:
            raise self._unavailable("add_if_absent", exc) from exc
        added = bool(int(inserted))
        logger.info("tag_add_if_absent", tag=tag, added=added, key=self._key)
        return added

    async def list_tags(self) -> list[str]:
        try:
            return list(await self._client.lrange(self._key, 0, -1))
        except RedisError as exc:
            raise self._unavailable("list_tags", exc) from exc

    async def contains(self, tag: str) -> bool:
        try:
            position = await self._client.lpos(self._key, tag)
        except RedisError as exc:
            raise self._unavailable("contains", exc) from exc
        return position is not None

    def get_provider_name(self) -> str:
        return "redis"

    async def close(self) -> None:
        await self._client.aclose()

    def _unavailable(self, operation: str, exc: Exception) -> StorageUnavailableError:
        logger.error("tag_store_unavailable", operation=operation, error=str(exc), key=self._key)
        return StorageUnavailableError(
            message=f"Tag store {operation} failed: {exc}",
            provider_name=self.get_provider_name(),
        )
