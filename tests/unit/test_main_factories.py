"""Unit tests for factory functions in knowledge_rag/main.py.

Covers embedding provider selection, tag store selection, the full
``_build_all`` assembly, and ``create_app``.  Nothing here opens a
network connection: the Redis client connects lazily and ChromaDB
persists under ``tmp_path``.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi import FastAPI

from knowledge_rag.config.settings import Settings
from knowledge_rag.utils.errors import ConfigurationError

# ======================================================================
# Shared helpers
# ======================================================================


def _settings(**overrides) -> Settings:
    """Build a Settings instance with safe defaults and optional overrides."""
    defaults = {
        "openai_api_key": "",
        "openai_base_url": "",
        "openai_embedding_model": "",
        "ollama_base_url": "http://localhost:11434",
        "redis_url": "",
        "embedding_provider": "nomic",
        "app_env": "test",
    }
    defaults.update(overrides)
    return Settings(**defaults)


# ======================================================================
# _build_embedding_provider
# ======================================================================


class TestBuildEmbeddingProvider:
    def test_nomic(self) -> None:
        from knowledge_rag.main import _build_embedding_provider
        from knowledge_rag.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider

        assert isinstance(_build_embedding_provider(_settings()), NomicEmbeddingProvider)

    def test_openai_is_case_insensitive(self) -> None:
        from knowledge_rag.main import _build_embedding_provider
        from knowledge_rag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        result = _build_embedding_provider(_settings(embedding_provider="OpenAI", openai_api_key="sk-x"))
        assert isinstance(result, OpenAIEmbeddingProvider)

    def test_unknown_name_raises(self) -> None:
        from knowledge_rag.main import _build_embedding_provider

        with pytest.raises(ConfigurationError):
            _build_embedding_provider(_settings(embedding_provider="word2vec"))


# ======================================================================
# _build_tag_store
# ======================================================================


class TestBuildTagStore:
    def test_in_memory_without_redis_url(self) -> None:
        from knowledge_rag.main import _build_tag_store
        from knowledge_rag.providers.tag_store.memory_tag_store import InMemoryTagStore

        assert isinstance(_build_tag_store(_settings()), InMemoryTagStore)

    def test_redis_with_url(self) -> None:
        from knowledge_rag.main import _build_tag_store
        from knowledge_rag.providers.tag_store.redis_tag_store import RedisTagStore

        store = _build_tag_store(_settings(redis_url="redis://localhost:6379/0"))
        assert isinstance(store, RedisTagStore)


# ======================================================================
# _build_all / create_app
# ======================================================================


class TestBuildAll:
    def test_assembles_every_component(self, tmp_path: Path) -> None:
        from knowledge_rag.main import _build_all

        app_settings = _settings(chromadb_persist_dir=str(tmp_path / "chroma"), clone_root=str(tmp_path))
        config = {
            "repository": {"ignored_dirs": [".git"]},
            "rag": {"system_prompt": "{language_clause}\n{documents}"},
        }

        components = _build_all(app_settings, config)

        assert set(components) == {
            "settings",
            "config",
            "embedding_provider",
            "vector_store",
            "tag_registry",
            "ingestion_service",
            "analysis_service",
            "llm_providers",
            "retrieval_service",
            "generation_service",
        }
        assert sorted(components["llm_providers"]) == ["ollama", "openai"]
        assert components["tag_registry"].backend_name == "memory"
        assert components["generation_service"].provider_names == ["ollama", "openai"]


def test_create_app_mounts_routes() -> None:
    from knowledge_rag.main import create_app

    application = create_app()

    assert isinstance(application, FastAPI)
    paths = {route.path for route in application.routes}
    assert "/api/v1/rag/query_rag_tag_list" in paths
    assert "/api/v1/{provider}/generate_stream_rag" in paths
    assert "/api/v1/health" in paths
