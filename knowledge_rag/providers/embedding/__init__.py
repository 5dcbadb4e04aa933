"""Embedding provider adapters."""

from knowledge_rag.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from knowledge_rag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["NomicEmbeddingProvider", "OpenAIEmbeddingProvider"]
