"""Knowledge service FastAPI application entry point.

Wires providers and services together via dependency injection, loads
configuration from ``.env`` and ``config/config.yaml``, and configures
structured logging.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from knowledge_rag import __version__
from knowledge_rag.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from knowledge_rag.api.routes import router as api_router
from knowledge_rag.config.loader import load_config
from knowledge_rag.config.settings import Settings
from knowledge_rag.interfaces.embedding_provider import IEmbeddingProvider
from knowledge_rag.interfaces.llm_provider import ILLMProvider
from knowledge_rag.interfaces.tag_store import ITagStore
from knowledge_rag.providers.extraction.document_extractor import DocumentTextExtractor
from knowledge_rag.providers.llm.ollama_provider import OllamaLLMProvider
from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider
from knowledge_rag.providers.tag_store.memory_tag_store import InMemoryTagStore
from knowledge_rag.providers.tag_store.redis_tag_store import RedisTagStore
from knowledge_rag.providers.vcs.git_cli_client import GitCLIClient
from knowledge_rag.providers.vector_store.chromadb_provider import ChromaDBProvider
from knowledge_rag.services.generation_service import GenerationService
from knowledge_rag.services.ingestion.chunker import TokenWindowChunker
from knowledge_rag.services.ingestion.ingestion_service import IngestionService
from knowledge_rag.services.repository.analysis_service import RepositoryAnalysisService
from knowledge_rag.services.repository.fetcher import RepositoryFetcher
from knowledge_rag.services.retrieval_service import RetrievalService
from knowledge_rag.services.tag_registry import TagRegistry
from knowledge_rag.utils.errors import ConfigurationError
from knowledge_rag.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """Build the embedding provider named by ``EMBEDDING_PROVIDER``.

    The choice is explicit rather than probed: every chunk in a collection
    must be embedded by the same model.
    """
    name = app_settings.embedding_provider.lower()
    if name == "openai":
        from knowledge_rag.providers.embedding.openai_embedding_provider import (
            OpenAIEmbeddingProvider,
        )

        return OpenAIEmbeddingProvider(settings=app_settings)
    if name == "nomic":
        from knowledge_rag.providers.embedding.nomic_embedding_provider import (
            NomicEmbeddingProvider,
        )

        return NomicEmbeddingProvider(settings=app_settings)
    raise ConfigurationError(message=f"Unknown EMBEDDING_PROVIDER '{app_settings.embedding_provider}'")


def _build_llm_providers(app_settings: Settings) -> dict[str, ILLMProvider]:
    """Both chat routes are always mounted; availability is reported by /health."""
    return {
        "ollama": OllamaLLMProvider(settings=app_settings),
        "openai": OpenAILLMProvider(settings=app_settings),
    }


def _build_tag_store(app_settings: Settings) -> ITagStore:
    """Redis when ``REDIS_URL`` is set, otherwise a process-local list."""
    if app_settings.redis_url:
        return RedisTagStore.from_url(
            app_settings.redis_url,
            key=app_settings.redis_tag_key,
            socket_timeout=app_settings.redis_socket_timeout,
        )
    _logger.warning("tag_store_in_memory", reason="REDIS_URL not set; tags will not survive a restart")
    return InMemoryTagStore()


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings, config: dict | None = None) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    config = config or load_config(settings=app_settings)

    embedding_provider = _build_embedding_provider(app_settings)
    vector_store = ChromaDBProvider(
        embedding_provider=embedding_provider,
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
    )
    tag_registry = TagRegistry(_build_tag_store(app_settings))

    chunker = TokenWindowChunker(
        max_tokens=app_settings.chunk_max_tokens,
        overlap_tokens=app_settings.chunk_overlap_tokens,
        min_chunk_tokens=app_settings.chunk_min_tokens,
        tokenizer=app_settings.chunk_tokenizer,
    )
    ingestion_service = IngestionService(
        extractor=DocumentTextExtractor(),
        chunker=chunker,
        vector_store=vector_store,
        tag_registry=tag_registry,
        max_workers=app_settings.ingestion_max_workers,
        batch_timeout=app_settings.ingestion_timeout_seconds,
    )

    fetcher = RepositoryFetcher(
        vcs=GitCLIClient(timeout=app_settings.clone_timeout_seconds),
        clone_root=app_settings.clone_root,
        ignored_dirs=config["repository"]["ignored_dirs"],
        max_file_bytes=app_settings.max_file_bytes,
    )
    analysis_service = RepositoryAnalysisService(fetcher=fetcher, ingestion=ingestion_service)

    llm_providers = _build_llm_providers(app_settings)
    retrieval_service = RetrievalService(vector_store=vector_store, default_top_k=app_settings.rag_top_k)
    generation_service = GenerationService(
        providers=llm_providers,
        retrieval=retrieval_service,
        system_prompt_template=config["rag"]["system_prompt"],
        reply_language=app_settings.rag_reply_language,
        top_k=app_settings.rag_top_k,
    )

    return {
        "settings": app_settings,
        "config": config,
        "embedding_provider": embedding_provider,
        "vector_store": vector_store,
        "tag_registry": tag_registry,
        "ingestion_service": ingestion_service,
        "analysis_service": analysis_service,
        "llm_providers": llm_providers,
        "retrieval_service": retrieval_service,
        "generation_service": generation_service,
    }


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = _build_all(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    _logger.info(
        "app_startup",
        version=__version__,
        environment=settings.app_env,
        embedding_provider=components["embedding_provider"].get_provider_name(),
        tag_store=components["tag_registry"].backend_name,
    )

    yield

    await components["tag_registry"].close()
    for provider in components["llm_providers"].values():
        await provider.close()
    _logger.info("app_shutdown", message="Tag store and LLM clients closed")


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="Knowledge RAG API",
        version=__version__,
        description=(
            "Ingest uploaded documents and Git repositories into tagged "
            "knowledge bases, then answer chat requests with or without "
            "retrieved context."
        ),
        lifespan=_lifespan,
    )

    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)
    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "knowledge_rag.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
