# contentmill/config.py
"""
Centralized configuration with validation.

Uses pydantic-settings to load and validate all environment variables at startup.
Fail fast with clear error messages if required config is missing.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = Field(
        ...,
        description="Relational datastore connection URL",
    )

    # Generative text service
    LLM_PROVIDER: str = Field(
        default="openai",
        description="Active rewrite provider: openai, mock",
    )
    OPENAI_API_KEY: str | None = Field(
        default=None,
        description="OpenAI API key for rewriting and sales classification",
    )
    OPENAI_MODEL: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model used for rewriting",
    )
    LLM_TIMEOUT_SECONDS: float = Field(
        default=120.0,
        description="Per-call ceiling for generative requests",
    )

    # Storage
    STORAGE_PROVIDER: str = Field(
        default="s3",
        description="Storage provider: s3, local",
    )
    S3_BUCKET: str | None = Field(
        default=None,
        description="Bucket holding article images",
    )
    S3_ENDPOINT_URL: str | None = None
    S3_REGION: str = "us-east-1"
    S3_PUBLIC_BASE_URL: str | None = Field(
        default=None,
        description="Public base URL for stored objects (CDN or bucket website)",
    )
    LOCAL_STORAGE_PATH: str = Field(
        default="./storage",
        description="Path for local storage provider",
    )
    LOCAL_STORAGE_PUBLIC_URL: str = Field(
        default="/media",
        description="URL prefix the local storage directory is served under",
    )

    # Network
    HTTP_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout for feed, page and image fetches",
    )
    HTTP_USER_AGENT: str = Field(
        default="ContentMill-Bot/1.0 (+content syndication)",
        description="User-Agent header sent on outbound fetches",
    )

    # Pipeline tuning
    DUPLICATE_THRESHOLD: int = Field(
        default=3,
        description="Max Hamming distance between fingerprints treated as duplicate",
    )
    REWRITE_MAX_INPUT_CHARS: int = Field(
        default=8000,
        description="Characters of source content sent to the rewrite call",
    )
    REWRITE_MAX_RETRIES: int = Field(
        default=3,
        description="Retries after a rate-limited rewrite call",
    )
    REWRITE_INITIAL_BACKOFF_SECONDS: float = 5.0
    REWRITE_BACKOFF_MULTIPLIER: float = 3.0
    DEFAULT_ARTICLES_PER_RUN: int = Field(
        default=10,
        description="Rewrite limit when a site has no articles_per_day configured",
    )

    # Images
    IMAGE_MAX_BYTES: int = 5 * 1024 * 1024
    IMAGE_MAX_WIDTH: int = 1200
    IMAGE_QUALITY: int = 80

    # Logging
    LOG_JSON: bool = True
    LOG_LEVEL: str = "INFO"

    @field_validator("DATABASE_URL")
    @classmethod
    def fix_database_url(cls, v: str) -> str:
        """Hosted Postgres hands out postgresql:// but SQLAlchemy needs postgresql+psycopg2://"""
        if v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+psycopg2://", 1)
        return v

    @field_validator("LLM_PROVIDER", "STORAGE_PROVIDER")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        return v.lower().strip()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings. Call at startup to validate config."""
    return Settings()
