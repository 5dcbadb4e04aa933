"""Text extraction adapters."""

from knowledge_rag.providers.extraction.document_extractor import DocumentTextExtractor

__all__ = ["DocumentTextExtractor"]
