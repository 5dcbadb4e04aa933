"""Ollama chat provider adapter.

Ollama exposes an OpenAI-compatible ``/v1`` API, so this adapter reuses
:class:`OpenAILLMProvider` with the client pointed at the local server.

Setup: install Ollama, ``ollama pull deepseek-r1:1.5b`` (or any chat
model), and set ``OLLAMA_BASE_URL``.
"""

from __future__ import annotations

import httpx
import openai

from knowledge_rag.config.settings import Settings
from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider


class OllamaLLMProvider(OpenAILLMProvider):
    """Chat provider backed by a local Ollama server."""

    _provider_name = "ollama"

    def __init__(self, settings: Settings) -> None:
        self._base_url = settings.ollama_base_url.rstrip("/")
        super().__init__(settings)

    def _build_client(self, settings: Settings) -> openai.AsyncOpenAI:
        return openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            # Ollama ignores the key but the SDK requires one.
            api_key="ollama",
            timeout=openai.Timeout(self._timeout, connect=5.0),
        )

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama server answers on ``/api/tags``."""
        if not self._base_url:
            return False
        try:
            response = httpx.get(f"{self._base_url}/api/tags", timeout=3.0)
            return response.status_code == 200
        except (httpx.ConnectError, httpx.TimeoutException):
            return False
