"""Chat model provider adapters.

Both implement ILLMProvider (knowledge_rag/interfaces/llm_provider.py) and
are registered in main.py under the route names ``openai`` and ``ollama``.
"""

from knowledge_rag.providers.llm.ollama_provider import OllamaLLMProvider
from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OllamaLLMProvider", "OpenAILLMProvider"]
