from __future__ import annotations

from datetime import date

from pydantic import Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .common.validation import require_positive


class Settings(BaseSettings):
    """Application configuration settings."""

    tmdb_api_key: SecretStr | None = Field(
        default=None, validation_alias="TMDB_API_KEY"
    )
    tmdb_base_url: str = Field(
        default="https://api.themoviedb.org/3", validation_alias="TMDB_BASE_URL"
    )
    database_url: str = Field(
        default="sqlite:///movie_catalog.db", validation_alias="DATABASE_URL"
    )
    pages: int = Field(default=5, validation_alias="INGEST_PAGES")
    language: str = Field(default="da", validation_alias="DISCOVER_LANGUAGE")
    release_date_gte: date = Field(
        default=date(2019, 1, 1), validation_alias="DISCOVER_RELEASE_DATE_GTE"
    )
    sort_by: str = Field(
        default="primary_release_date.desc", validation_alias="DISCOVER_SORT_BY"
    )
    enrichment_workers: int = Field(default=8, validation_alias="ENRICHMENT_WORKERS")
    enrichment_queue_size: int = Field(
        default=32, validation_alias="ENRICHMENT_QUEUE_SIZE"
    )
    http_timeout: float = Field(default=10.0, validation_alias="HTTP_TIMEOUT")
    log_level: str = Field(default="info", validation_alias="LOG_LEVEL")

    @field_validator("pages", "enrichment_workers", "enrichment_queue_size")
    @classmethod
    def _require_positive(cls, value: int, info: ValidationInfo) -> int:
        return require_positive(value, name=info.field_name)

    @field_validator("http_timeout")
    @classmethod
    def _require_positive_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("http_timeout must be positive")
        return value

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )
