"""Repository fetch and analysis."""

from knowledge_rag.services.repository.analysis_service import RepositoryAnalysisService
from knowledge_rag.services.repository.fetcher import RepositoryFetcher, derive_project_name

__all__ = ["RepositoryAnalysisService", "RepositoryFetcher", "derive_project_name"]
