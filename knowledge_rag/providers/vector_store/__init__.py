"""Vector store provider implementations.

ChromaDB is the only implementation.  It persists to CHROMADB_PERSIST_DIR
and filters every search on the ``knowledge`` metadata key.
"""

from knowledge_rag.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
