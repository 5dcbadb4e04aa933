"""Ingestion pipeline: extraction, token-window splitting, tagging and storage."""

from knowledge_rag.services.ingestion.chunker import TokenWindowChunker
from knowledge_rag.services.ingestion.ingestion_service import IngestionService

__all__ = ["IngestionService", "TokenWindowChunker"]
