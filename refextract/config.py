"""
Application configuration using Pydantic Settings.

Automatically loads environment variables from .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI (reference extraction)
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"
    openai_max_tokens: int = 16000

    # Perplexity (tier 2 affiliation lookup, optional)
    perplexity_api_key: str | None = None
    perplexity_model: str = "sonar"

    # Database
    database_url: str = "sqlite:///./references.db"

    # Affiliation lookups
    contact_email: str = "reference-extractor@example.com"
    lookup_timeout_seconds: float = 30.0
    semantic_scholar_delay_seconds: float = 1.0

    # Chunking of long documents before LLM extraction
    chunk_size_chars: int = 15000
    chunk_boundary_window: int = 500

    # Uploads
    max_upload_bytes: int = 10 * 1024 * 1024

    # Browser origins allowed to call the API (JSON list in the environment)
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Finished jobs are evicted from memory this long after finishing
    extraction_job_retention_seconds: float = 60 * 60
    enhancement_job_retention_seconds: float = 24 * 60 * 60

    # Debug flags
    sql_debug: bool = False
    debug: bool = False

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @property
    def user_agent(self) -> str:
        """User-Agent sent to the public bibliographic APIs."""
        return f"mailto:{self.contact_email}"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration loaded from environment.
    """
    return Settings()
