"""Plain and retrieval-augmented chat generation.

Plain generation forwards the user's message to the chosen provider.
RAG generation first retrieves the top chunks of a knowledge tag, renders
them into the system prompt, and sends that system message ahead of the
user message.
"""

from __future__ import annotations

from typing import AsyncIterator

import structlog

from knowledge_rag.interfaces.llm_provider import ILLMProvider
from knowledge_rag.services.retrieval_service import RetrievalService
from knowledge_rag.utils.errors import InvalidArgumentError

logger = structlog.get_logger(logger_name=__name__)


class GenerationService:
    """Routes generation requests to a named chat provider.

    Parameters
    ----------
    providers:
        Chat providers keyed by route name (``"ollama"``, ``"openai"``).
    retrieval:
        Used by the RAG variants to fetch context.
    system_prompt_template:
        Format string with ``{documents}`` and ``{language_clause}`` fields.
    reply_language:
        When set, the system prompt asks for replies in this language.
    top_k:
        Chunks retrieved per RAG request.
    """

    def __init__(
        self,
        providers: dict[str, ILLMProvider],
        retrieval: RetrievalService,
        system_prompt_template: str,
        reply_language: str = "",
        top_k: int = 5,
    ) -> None:
        self._providers = providers
        self._retrieval = retrieval
        self._template = system_prompt_template
        self._reply_language = reply_language
        self._top_k = top_k

    @property
    def provider_names(self) -> list[str]:
        return list(self._providers)

    def get_provider(self, name: str) -> ILLMProvider:
        try:
            return self._providers[name]
        except KeyError:
            raise InvalidArgumentError(
                message=f"Unknown provider '{name}'; expected one of {sorted(self._providers)}"
            ) from None

    # ------------------------------------------------------------------
    # Plain generation
    # ------------------------------------------------------------------

    async def generate(self, provider: str, model: str, message: str) -> str:
        self._require_message(message)
        return await self.get_provider(provider).complete(model=model, user_prompt=message)

    def stream(self, provider: str, model: str, message: str) -> AsyncIterator[str]:
        self._require_message(message)
        return self.get_provider(provider).stream_complete(model=model, user_prompt=message)

    # ------------------------------------------------------------------
    # RAG generation
    # ------------------------------------------------------------------

    async def build_system_prompt(self, tag: str, message: str) -> str:
        """Retrieve context for *message* from *tag* and render the system prompt."""
        texts = await self._retrieval.retrieve(tag, message, self._top_k)
        language_clause = f" Your reply must be in {self._reply_language}." if self._reply_language else ""
        logger.info("rag_context_built", tag=tag, chunks=len(texts))
        return self._template.format(
            documents=RetrievalService.build_context(texts),
            language_clause=language_clause,
        )

    async def generate_rag(self, provider: str, model: str, tag: str, message: str) -> str:
        self._require_message(message)
        llm = self.get_provider(provider)
        system_prompt = await self.build_system_prompt(tag, message)
        return await llm.complete(model=model, user_prompt=message, system_prompt=system_prompt)

    async def stream_rag(self, provider: str, model: str, tag: str, message: str) -> AsyncIterator[str]:
        """Retrieve first, then stream the model's answer.

        Retrieval errors surface when this coroutine is awaited, before any
        fragment is produced.
        """
        self._require_message(message)
        llm = self.get_provider(provider)
        system_prompt = await self.build_system_prompt(tag, message)
        return llm.stream_complete(model=model, user_prompt=message, system_prompt=system_prompt)

    @staticmethod
    def _require_message(message: str) -> None:
        if not message or not message.strip():
            raise InvalidArgumentError(message="Message must not be empty")
