"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
A custom ``openai_base_url`` points it at any OpenAI-compatible service;
:class:`~knowledge_rag.providers.embedding.nomic_embedding_provider.NomicEmbeddingProvider`
reuses the same request path against Ollama.
"""

from __future__ import annotations

import openai
import structlog

from knowledge_rag.config.settings import Settings
from knowledge_rag.interfaces.embedding_provider import IEmbeddingProvider
from knowledge_rag.utils.errors import RAGError

logger = structlog.get_logger(logger_name=__name__)

_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``text-embedding-3-small`` (1536 dims) unless
    ``openai_embedding_model`` says otherwise.  Chunk texts and queries
    pass through :meth:`_document_input` / :meth:`_query_input` so
    subclasses can add model-specific task prefixes.
    """

    # Max inputs per embeddings.create call.
    batch_limit = 2048

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {"api_key": self._api_key or "unset"}
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.openai_embedding_model or "text-embedding-3-small"
        self._dimension = _MODEL_DIMENSIONS.get(self._model, 1536)

    def _document_input(self, text: str) -> str:
        return text

    def _query_input(self, text: str) -> str:
        return text

    async def _create(self, inputs: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        try:
            for start in range(0, len(inputs), self.batch_limit):
                batch = inputs[start : start + self.batch_limit]
                response = await self._client.embeddings.create(input=batch, model=self._model)
                vectors.extend(item.embedding for item in response.data)
                logger.debug(
                    "embedding_batch",
                    provider=self.get_provider_name(),
                    model=self._model,
                    batch_size=len(batch),
                )
        except openai.APIError as exc:
            raise RAGError(
                message=f"Embedding request to {self._model} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return vectors

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed chunk *texts* in calls of at most :attr:`batch_limit` inputs."""
        if not texts:
            return []
        return await self._create([self._document_input(t) for t in texts])

    async def embed_single(self, text: str) -> list[float]:
        """Embed one search query."""
        vectors = await self._create([self._query_input(text)])
        if not vectors:
            raise RAGError(message="Embedding API returned no vector", provider_name=self.get_provider_name())
        return vectors[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "openai_embedding"

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
