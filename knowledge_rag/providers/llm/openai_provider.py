"""OpenAI-compatible chat provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.
When ``openai_base_url`` is set the client targets that URL instead of
api.openai.com, which covers most hosted OpenAI-compatible services.

Messages are sent system first, then user.
"""

from __future__ import annotations

from typing import Any, AsyncIterator

import openai
import structlog

from knowledge_rag.config.settings import Settings
from knowledge_rag.interfaces.llm_provider import ILLMProvider
from knowledge_rag.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)


def _build_messages(user_prompt: str, system_prompt: str | None) -> list[dict[str, str]]:
    messages: list[dict[str, str]] = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": user_prompt})
    return messages


class OpenAILLMProvider(ILLMProvider):
    """Chat provider backed by an OpenAI-compatible API."""

    _provider_name = "openai"

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        self._timeout = settings.llm_timeout_seconds
        self._client = self._build_client(settings)

    def _build_client(self, settings: Settings) -> openai.AsyncOpenAI:
        client_kwargs: dict[str, Any] = {
            # The SDK refuses an empty key at construction time; is_available()
            # still reports the real configuration.
            "api_key": self._api_key or "unset",
            "timeout": openai.Timeout(self._timeout, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url
        return openai.AsyncOpenAI(**client_kwargs)

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        model: str,
        user_prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> str:
        """Generate a completion with the chat completions API."""
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": _build_messages(user_prompt, system_prompt),
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as exc:
            raise LLMError(
                message=f"{self._provider_name} timed out after {self._timeout}s",
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise LLMError(
                message=f"{self._provider_name} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        content = response.choices[0].message.content if response.choices else None
        if content is None:
            raise LLMError(
                message=f"{self._provider_name} returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "llm_completion",
            provider=self._provider_name,
            model=model,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    async def stream_complete(
        self,
        model: str,
        user_prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[str]:
        """Yield content deltas as they arrive.

        The upstream stream is closed in ``finally`` so a consumer that
        stops early, or is cancelled, releases the HTTP connection.
        """
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": _build_messages(user_prompt, system_prompt),
            "stream": True,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        try:
            stream = await self._client.chat.completions.create(**kwargs)
        except openai.APIError as exc:
            raise LLMError(
                message=f"{self._provider_name} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        fragments = 0
        try:
            async for event in stream:
                if not event.choices:
                    continue
                delta = event.choices[0].delta.content
                if delta:
                    fragments += 1
                    yield delta
        except openai.APIError as exc:
            raise LLMError(
                message=f"{self._provider_name} stream error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        finally:
            await stream.close()
            logger.info("llm_stream_closed", provider=self._provider_name, model=model, fragments=fragments)

    def get_provider_name(self) -> str:
        return self._provider_name

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)

    async def close(self) -> None:
        await self._client.close()
