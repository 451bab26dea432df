"""Typed settings configuration - single source of truth."""

from functools import lru_cache
from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database ("memory" keeps documents, messages and vectors in process)
    storage_backend: Literal["sql", "memory"] = "sql"
    database_url: str = "sqlite+aiosqlite:///./docchat.db"

    # Vector store (Qdrant server URL, else an on-disk path, else process memory)
    qdrant_url: str | None = None
    qdrant_api_key: SecretStr | None = None
    qdrant_path: str | None = None
    qdrant_collection: str = "docchat_chunks"

    # Cache / rate limiting
    redis_url: str | None = None

    # OpenAI (chat completion + embeddings)
    openai_api_key: SecretStr | None = None
    openai_chat_model: str = "gpt-3.5-turbo"
    openai_embedding_model: str = "text-embedding-3-small"
    embedding_batch_size: int = 64
    completion_temperature: float = 0.0

    # Deterministic stub embedder (used when no API key is configured)
    embedding_dimension: int = 256

    # Upload provider
    upload_base_url: str = "https://utfs.io/f/"
    upload_webhook_secret: SecretStr | None = None

    # Ingestion
    fetch_timeout_seconds: float = 30.0
    chunk_max_chars: int = 1000

    # Retrieval
    retrieval_top_k: int = 4
    history_window: int = 6

    # Message pagination
    messages_page_default: int = 10
    messages_page_max: int = 100

    # Rate limiting (requests per minute)
    messages_per_min: int = 20


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
