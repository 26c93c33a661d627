"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # Storage
    database_path: str = Field(
        default="data/rag.db",
        description="SQLite database file. Use ':memory:' for an ephemeral store.",
    )

    # Embedding
    embedding_provider: str = Field(default="huggingface", description="huggingface | ollama")
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    ollama_base_url: str = "http://localhost:11434"
    ollama_embedding_model: str = "nomic-embed-text"
    ollama_timeout: float = 30.0
    embedding_max_retries: int = Field(default=3, ge=1, description="Total attempts per embedding call")
    embedding_retry_delay: float = Field(default=1.0, ge=0, description="Base backoff delay in seconds")

    # Chunking
    chunk_size: int = Field(default=1000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)

    # Pipeline
    failure_threshold: float = Field(default=0.5, gt=0, le=1)
    max_file_size: int = 10 * 1024 * 1024

    # Retrieval
    search_limit: int = 10
    chat_context_limit: int = 5

    # Status stream
    progress_stream_interval: float = Field(default=1.0, gt=0)

    # LLM
    openai_api_key: str = Field(default="", description="OpenAI API key (or dummy value for local vLLM)")
    llm_model_name: str = Field(default="gpt-4o-mini", description="LLM model identifier")
    llm_base_url: str = Field(
        default="",
        description="Base URL for an OpenAI-compatible API. Leave empty to use OpenAI cloud.",
    )

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Module-level instance, import `settings` wherever needed.
settings = Settings()
