"""Abstract base class for chat model providers.

Both operations take the model id per call, because callers pick the
model on every request (``/generate?model=...``).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator


# Concrete implementations: OpenAILLMProvider, OllamaLLMProvider
# Located in: knowledge_rag/providers/llm/
class ILLMProvider(ABC):
    """Contract for chat model services."""

    @abstractmethod
    async def complete(
        self,
        model: str,
        user_prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> str:
        """Generate a full completion.

        Parameters
        ----------
        model:
            Provider-specific model id, e.g. ``deepseek-r1:1.5b`` or ``gpt-4o``.
        user_prompt:
            The user message.
        system_prompt:
            Optional system message sent before the user message.
        temperature:
            Sampling temperature; provider default when ``None``.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        knowledge_rag.utils.errors.LLMError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    def stream_complete(
        self,
        model: str,
        user_prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[str]:
        """Stream a completion as text fragments.

        The iterator is finite and not restartable.  Closing it early (or
        cancelling the consuming task) closes the upstream HTTP stream.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the route-level provider name, e.g. ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured."""

    async def close(self) -> None:
        """Release any HTTP client held by the provider.  No-op by default."""
