"""Nomic embedding provider adapter (local via Ollama).

``nomic-embed-text`` (768 dimensions) served from Ollama's
OpenAI-compatible ``/v1`` endpoint.  No API key required.

The model is trained with task prefixes, so stored chunks are sent as
``search_document: ...`` and queries as ``search_query: ...``.
"""

from __future__ import annotations

import httpx
import openai

from knowledge_rag.config.settings import Settings
from knowledge_rag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider


class NomicEmbeddingProvider(OpenAIEmbeddingProvider):
    """Embedding provider backed by ``nomic-embed-text`` served via Ollama."""

    batch_limit = 512

    def __init__(self, settings: Settings) -> None:
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._api_key = ""
        self._client = openai.AsyncOpenAI(base_url=f"{self._base_url}/v1", api_key="ollama")
        self._model = "nomic-embed-text"
        self._dimension = 768

    def _document_input(self, text: str) -> str:
        return f"search_document: {text}"

    def _query_input(self, text: str) -> str:
        return f"search_query: {text}"

    def get_provider_name(self) -> str:
        return "nomic_embedding"

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama server answers."""
        if not self._base_url:
            return False
        try:
            response = httpx.get(f"{self._base_url}/api/tags", timeout=3.0)
        except (httpx.ConnectError, httpx.TimeoutException):
            return False
        return response.status_code == 200
