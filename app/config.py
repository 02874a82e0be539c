"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Iterable, Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .categories import CATEGORY_FAMILIES


DEFAULT_PROVIDER_IDS: tuple[int, ...] = (8, 119, 337)


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Release Radar", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    tmdb_api_key: str | None = Field(default=None, alias="TMDB_API_KEY")
    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_language: str = Field(default="pt-BR", alias="TMDB_LANGUAGE")
    tmdb_fallback_language: str = Field(
        default="en-US", alias="TMDB_FALLBACK_LANGUAGE"
    )
    tmdb_region: str = Field(default="BR", alias="TMDB_REGION")
    tmdb_list_pages: int = Field(default=1, alias="TMDB_LIST_PAGES", ge=1, le=5)
    top_provider_ids: Annotated[tuple[int, ...], NoDecode] = Field(
        default=DEFAULT_PROVIDER_IDS, alias="TOP_PROVIDER_IDS"
    )
    fetch_delay_ms: int = Field(default=250, alias="FETCH_DELAY_MS", ge=0, le=10_000)

    frequent_refresh_days: float = Field(
        default=1, alias="FREQUENT_REFRESH_DAYS", gt=0, le=30
    )
    curated_refresh_days: float = Field(
        default=7, alias="CURATED_REFRESH_DAYS", gt=0, le=90
    )
    refresh_poll_seconds: int = Field(
        default=3_600, alias="REFRESH_POLL_SECONDS", ge=60
    )

    openrouter_api_key: str | None = Field(
        default=None, alias="OPENROUTER_API_KEY"
    )
    openrouter_model: str = Field(
        default="google/gemini-2.5-flash", alias="OPENROUTER_MODEL"
    )
    openrouter_api_url: HttpUrl = Field(
        default="https://openrouter.ai/api/v1", alias="OPENROUTER_API_URL"
    )
    oracle_timeout_seconds: float = Field(
        default=20.0, alias="ORACLE_TIMEOUT_SECONDS", gt=0, le=120
    )
    curated_selection_size: int = Field(
        default=20, alias="CURATED_SELECTION_SIZE", ge=1, le=100
    )

    database_url: str = Field(
        default="sqlite+aiosqlite:///./radar.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("top_provider_ids", mode="before")
    @classmethod
    def _parse_provider_ids(cls, value: object) -> tuple[int, ...]:
        """Normalise provider id selections from environment values."""

        if value is None:
            return DEFAULT_PROVIDER_IDS
        if isinstance(value, int):
            return (value,)
        if isinstance(value, str):
            raw_values = [part.strip() for part in value.split(",")]
        elif isinstance(value, Iterable):
            raw_values = [str(part).strip() for part in value]
        else:
            raise TypeError("TOP_PROVIDER_IDS must be a string or iterable of ids")

        cleaned: list[int] = []
        for entry in raw_values:
            if not entry:
                continue
            try:
                provider_id = int(entry)
            except ValueError as exc:
                raise ValueError("Provider ids must be integers") from exc
            if provider_id <= 0:
                raise ValueError("Provider ids must be positive")
            if provider_id not in cleaned:
                cleaned.append(provider_id)
        return tuple(cleaned)

    @property
    def fetch_delay_seconds(self) -> float:
        return self.fetch_delay_ms / 1000

    def refresh_interval_days(self, family: str) -> float:
        """Return the staleness interval configured for a category family."""

        if family not in CATEGORY_FAMILIES:
            raise KeyError(f"Unknown category family {family!r}")
        if family == "curated":
            return self.curated_refresh_days
        return self.frequent_refresh_days

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
