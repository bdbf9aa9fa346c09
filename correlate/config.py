"""Settings - centralized configuration for correlate."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CACHE_DIR = Path.home() / ".correlate" / "embeddings"


class Settings(BaseSettings):
    """Runtime settings, read from ``CORRELATE_*`` environment variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="CORRELATE_",
        env_file=".env",
        extra="ignore",
        protected_namespaces=(),
    )

    # ========== Correlation backends ==========
    ollama_base_url: str = "http://localhost:11434"
    ollama_model: str = "llama3"
    gemini_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "CORRELATE_GEMINI_API_KEY", "gemini_api_key"),
    )
    gemini_model: str = "gemini-1.5-flash"

    # ========== Translation ==========
    confidence_threshold: float = Field(default=0.7, ge=0.0, le=1.0)

    # ========== Embeddings ==========
    embed_model: str = "nomic-embed-text"
    embed_batch_size: int = Field(default=10, gt=0)
    embed_max_tokens: int = Field(default=512, gt=0)
    embed_batch_delay: float = 0.1  # seconds between batches
    embed_max_retries: int = 2
    cache_dir: Path = DEFAULT_CACHE_DIR

    # ========== Similarity ==========
    similarity_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    similarity_max_results: int = 5
    metadata_weight: float = Field(default=0.3, ge=0.0, le=1.0)

    # ========== Logging ==========
    log_level: str = "INFO"
    log_file: Optional[str] = None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
