"""Abstract interfaces for every external collaborator of the core pipeline."""

from knowledge_rag.interfaces.embedding_provider import IEmbeddingProvider
from knowledge_rag.interfaces.llm_provider import ILLMProvider
from knowledge_rag.interfaces.tag_store import ITagStore
from knowledge_rag.interfaces.text_extractor import ITextExtractor
from knowledge_rag.interfaces.vcs_client import IVCSClient
from knowledge_rag.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IEmbeddingProvider",
    "ILLMProvider",
    "ITagStore",
    "ITextExtractor",
    "IVCSClient",
    "IVectorStoreProvider",
]
