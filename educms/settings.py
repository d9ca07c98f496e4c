"""Application settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from EDUCMS_* environment variables or .env."""

    model_config = SettingsConfigDict(
        env_prefix="EDUCMS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: str = "development"

    # Backend selection (read once at startup)
    use_rest_backend: bool = False

    # Table API (hosted relational platform)
    table_api_url: str = "http://localhost:54321"
    table_api_key: str = ""
    access_token: str = ""

    # REST API
    rest_api_url: str = "http://localhost:5000/api/v1"
    rest_api_token: str = ""
    rest_page_size: int = Field(default=100, ge=1, le=100)

    # HTTP behaviour
    request_timeout_seconds: float = 30.0
    retry_attempts: int = Field(default=3, ge=1)
    retry_backoff_seconds: float = Field(default=1.0, ge=0)

    # Object storage
    storage_backend: str = "supabase"  # supabase | filesystem
    storage_path: str = "data/storage"
    upload_chunk_size: int = Field(default=256 * 1024, gt=0)
    signed_url_expires_seconds: int = Field(default=3600, gt=0)
    rollback_on_entity_failure: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    config_dir: str | None = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
