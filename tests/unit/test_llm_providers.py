"""Unit tests for chat and embedding provider adapters — OpenAI and Ollama."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from knowledge_rag.config.settings import Settings
from knowledge_rag.utils.errors import LLMError, RAGError

# ======================================================================
# Shared helpers
# ======================================================================


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_embedding_model": "",
        "ollama_base_url": "http://localhost:11434",
        "redis_url": "",
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _completion(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    response.usage = MagicMock(total_tokens=42)
    return response


def _event(content: str | None) -> MagicMock:
    return MagicMock(choices=[MagicMock(delta=MagicMock(content=content))])


class _FakeStream:
    """Async-iterable stand-in for the SDK's ``AsyncStream``."""

    def __init__(self, events: list, error: Exception | None = None) -> None:
        self._events = events
        self._error = error
        self.close = AsyncMock()

    async def __aiter__(self):  # noqa: ANN204
        for event in self._events:
            yield event
        if self._error is not None:
            raise self._error


def _api_error(message: str = "bad request") -> openai.APIError:
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return openai.APIError(message, request=request, body=None)


# ======================================================================
# OpenAI chat provider
# ======================================================================


class TestOpenAILLMProvider:
    def test_is_available_with_key(self) -> None:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        assert OpenAILLMProvider(_settings()).is_available() is True
        assert OpenAILLMProvider(_settings()).get_provider_name() == "openai"

    def test_is_available_without_key(self) -> None:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        assert OpenAILLMProvider(_settings(openai_api_key="")).is_available() is False

    @pytest.mark.asyncio
    async def test_complete_sends_system_before_user(self) -> None:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_completion("answer"))

        with patch("knowledge_rag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(_settings())
            result = await provider.complete("gpt-4o", "question", system_prompt="context")

        assert result == "answer"
        kwargs = mock_client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["messages"] == [
            {"role": "system", "content": "context"},
            {"role": "user", "content": "question"},
        ]

    @pytest.mark.asyncio
    async def test_complete_without_system_prompt(self) -> None:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_completion("answer"))

        with patch("knowledge_rag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            await OpenAILLMProvider(_settings()).complete("gpt-4o", "question")

        messages = mock_client.chat.completions.create.await_args.kwargs["messages"]
        assert messages == [{"role": "user", "content": "question"}]

    @pytest.mark.asyncio
    async def test_complete_api_error(self) -> None:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=_api_error())

        with patch("knowledge_rag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            with pytest.raises(LLMError) as exc_info:
                await OpenAILLMProvider(_settings()).complete("gpt-4o", "question")

        assert exc_info.value.provider_name == "openai"

    @pytest.mark.asyncio
    async def test_complete_empty_content(self) -> None:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_completion(None))

        with patch("knowledge_rag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            with pytest.raises(LLMError):
                await OpenAILLMProvider(_settings()).complete("gpt-4o", "question")

    @pytest.mark.asyncio
    async def test_stream_yields_deltas_and_closes(self) -> None:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        stream = _FakeStream([_event("Hel"), _event(None), _event("lo")])
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=stream)

        with patch("knowledge_rag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(_settings())
            parts = [p async for p in provider.stream_complete("gpt-4o", "hi")]

        assert parts == ["Hel", "lo"]
        assert mock_client.chat.completions.create.await_args.kwargs["stream"] is True
        stream.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stream_closed_when_consumer_stops_early(self) -> None:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        stream = _FakeStream([_event("a"), _event("b"), _event("c")])
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=stream)

        with patch("knowledge_rag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            fragments = OpenAILLMProvider(_settings()).stream_complete("gpt-4o", "hi")
            assert await fragments.__anext__() == "a"
            await fragments.aclose()

        stream.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stream_error_mid_way(self) -> None:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        stream = _FakeStream([_event("a")], error=_api_error("connection reset"))
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=stream)

        with patch("knowledge_rag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            parts = []
            with pytest.raises(LLMError):
                async for part in OpenAILLMProvider(_settings()).stream_complete("gpt-4o", "hi"):
                    parts.append(part)

        assert parts == ["a"]
        stream.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_closes_client(self) -> None:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        mock_client = AsyncMock()
        with patch("knowledge_rag.providers.llm.openai_provider.openai.AsyncOpenAI", return_value=mock_client):
            provider = OpenAILLMProvider(_settings())
            await provider.close()

        mock_client.close.assert_awaited_once()


# ======================================================================
# Ollama chat provider
# ======================================================================


class TestOllamaLLMProvider:
    def test_targets_ollama_openai_endpoint(self) -> None:
        from knowledge_rag.providers.llm.ollama_provider import OllamaLLMProvider

        with patch("knowledge_rag.providers.llm.ollama_provider.openai.AsyncOpenAI") as client_cls:
            provider = OllamaLLMProvider(_settings(ollama_base_url="http://ollama:11434/"))

        assert client_cls.call_args.kwargs["base_url"] == "http://ollama:11434/v1"
        assert provider.get_provider_name() == "ollama"

    def test_is_available_when_server_answers(self) -> None:
        from knowledge_rag.providers.llm.ollama_provider import OllamaLLMProvider

        provider = OllamaLLMProvider(_settings())
        with patch(
            "knowledge_rag.providers.llm.ollama_provider.httpx.get",
            return_value=MagicMock(status_code=200),
        ):
            assert provider.is_available() is True

    def test_is_unavailable_when_server_down(self) -> None:
        from knowledge_rag.providers.llm.ollama_provider import OllamaLLMProvider

        provider = OllamaLLMProvider(_settings())
        with patch(
            "knowledge_rag.providers.llm.ollama_provider.httpx.get",
            side_effect=httpx.ConnectError("refused"),
        ):
            assert provider.is_available() is False

    @pytest.mark.asyncio
    async def test_complete_errors_name_ollama(self) -> None:
        from knowledge_rag.providers.llm.ollama_provider import OllamaLLMProvider

        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=_api_error())

        with patch("knowledge_rag.providers.llm.ollama_provider.openai.AsyncOpenAI", return_value=mock_client):
            with pytest.raises(LLMError) as exc_info:
                await OllamaLLMProvider(_settings()).complete("deepseek-r1:1.5b", "hi")

        assert exc_info.value.provider_name == "ollama"


# ======================================================================
# Embedding providers
# ======================================================================


class TestEmbeddingProviders:
    @pytest.mark.asyncio
    async def test_openai_embed(self) -> None:
        from knowledge_rag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        response = MagicMock()
        response.data = [MagicMock(embedding=[0.1, 0.2]), MagicMock(embedding=[0.3, 0.4])]
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=response)

        with patch(
            "knowledge_rag.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAIEmbeddingProvider(_settings())
            vectors = await provider.embed(["a", "b"])

        assert vectors == [[0.1, 0.2], [0.3, 0.4]]

    @pytest.mark.asyncio
    async def test_openai_embed_error(self) -> None:
        from knowledge_rag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(side_effect=_api_error())

        with patch(
            "knowledge_rag.providers.embedding.openai_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            with pytest.raises(RAGError):
                await OpenAIEmbeddingProvider(_settings()).embed(["a"])

    def test_nomic_dimension_and_name(self) -> None:
        from knowledge_rag.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider

        provider = NomicEmbeddingProvider(_settings())
        assert provider.get_dimension() == 768
        assert provider.get_provider_name() == "nomic_embedding"

    @pytest.mark.asyncio
    async def test_nomic_task_prefixes(self) -> None:
        from knowledge_rag.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider

        response = MagicMock()
        response.data = [MagicMock(embedding=[0.5, 0.5])]
        mock_client = AsyncMock()
        mock_client.embeddings.create = AsyncMock(return_value=response)

        with patch(
            "knowledge_rag.providers.embedding.nomic_embedding_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = NomicEmbeddingProvider(_settings())
            await provider.embed(["chunk text"])
            await provider.embed_single("what is it")

        inputs = [call.kwargs["input"] for call in mock_client.embeddings.create.await_args_list]
        assert inputs == [["search_document: chunk text"], ["search_query: what is it"]]
        assert mock_client.embeddings.create.await_args.kwargs["model"] == "nomic-embed-text"
