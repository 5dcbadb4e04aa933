"""Tag set backends: Redis for shared deployments, in-memory for single processes and tests."""

from knowledge_rag.providers.tag_store.memory_tag_store import InMemoryTagStore
from knowledge_rag.providers.tag_store.redis_tag_store import RedisTagStore

__all__ = ["InMemoryTagStore", "RedisTagStore"]
