"""Application settings loaded from environment variables via pydantic-settings.

Values come from (highest priority first) the process environment, then a
``.env`` file in the working directory, then the defaults below.  Field
``redis_url`` maps to ``REDIS_URL`` and so on.

``redis_url`` defaults to a local Redis.  An empty value selects the
in-process tag store, which only suits a single worker process and loses
its tags on restart.
"""

import tempfile

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Knowledge service settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === LLM Providers ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint override
    openai_embedding_model: str = ""  # empty = text-embedding-3-small
    ollama_base_url: str = "http://localhost:11434"
    llm_timeout_seconds: float = 60.0

    # === Embeddings ===
    # "openai" or "nomic" (nomic-embed-text served by Ollama)
    embedding_provider: str = "nomic"

    # === Vector store ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "knowledge_corpus"

    # === Tag store ===
    redis_url: str = "redis://localhost:6379/0"  # empty = in-process store, lost on restart
    redis_tag_key: str = "ragTag"
    redis_socket_timeout: float = 10.0

    # === Chunking ===
    chunk_max_tokens: int = Field(default=800, ge=1)
    chunk_overlap_tokens: int = Field(default=100, ge=0)
    chunk_min_tokens: int = Field(default=80, ge=0)
    chunk_tokenizer: str = "regex"  # or a HuggingFace tokenizer id, e.g. bert-base-uncased

    # === Ingestion ===
    ingestion_max_workers: int = Field(default=4, ge=1)
    ingestion_timeout_seconds: float = 0.0  # 0 disables the batch deadline
    max_upload_bytes: int = 50 * 1024 * 1024

    # === Repository fetch ===
    clone_root: str = tempfile.gettempdir()
    clone_timeout_seconds: float = 300.0
    max_file_bytes: int = 2 * 1024 * 1024

    # === RAG ===
    rag_top_k: int = Field(default=5, ge=1)
    rag_reply_language: str = ""

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8090
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_llm_providers(self) -> list[str]:
        """Return the chat providers that have enough configuration to be used."""
        providers: list[str] = []
        if self.ollama_base_url:
            providers.append("ollama")
        if self.openai_api_key:
            providers.append("openai")
        return providers
