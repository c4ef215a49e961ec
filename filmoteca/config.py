"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Iterable, Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .extractor import DEFAULT_DIRECTOR_LABELS, DEFAULT_WRITER_LABELS
from .services.fetch import FetchPolicy


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="Filmoteca", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=4000, alias="PORT")

    tmdb_api_url: HttpUrl = Field(
        default="https://api.themoviedb.org/3", alias="TMDB_API_URL"
    )
    tmdb_access_token: str | None = Field(default=None, alias="TMDB_ACCESS_TOKEN")
    tmdb_image_url: str = Field(
        default="https://image.tmdb.org/t/p/w500", alias="TMDB_IMAGE_URL"
    )

    primary_language: str = Field(default="it-IT", alias="PRIMARY_LANGUAGE")
    secondary_language: str = Field(default="en-US", alias="SECONDARY_LANGUAGE")
    rating_country: str = Field(default="IT", alias="RATING_COUNTRY")

    imdb_base_url: HttpUrl = Field(
        default="https://www.imdb.com", alias="IMDB_BASE_URL"
    )
    scraper_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
        ),
        alias="SCRAPER_USER_AGENT",
    )
    scraper_accept_language: str = Field(
        default="it-IT,it;q=0.9,en-US;q=0.8,en;q=0.7",
        alias="SCRAPER_ACCEPT_LANGUAGE",
    )

    openrouter_api_url: HttpUrl = Field(
        default="https://openrouter.ai/api/v1", alias="OPENROUTER_API_URL"
    )
    openrouter_api_key: str | None = Field(default=None, alias="OPENROUTER_API_KEY")
    openrouter_model: str = Field(
        default="google/gemini-2.5-flash-lite", alias="OPENROUTER_MODEL"
    )

    fetch_timeout: float = Field(default=10.0, alias="FETCH_TIMEOUT", gt=0, le=120)
    fetch_max_retries: int = Field(default=2, alias="FETCH_MAX_RETRIES", ge=0, le=10)
    fetch_backoff_base: float = Field(
        default=0.5, alias="FETCH_BACKOFF_BASE", ge=0, le=30
    )
    generative_timeout: float = Field(
        default=15.0, alias="GENERATIVE_TIMEOUT", gt=0, le=300
    )

    translate_api_url: HttpUrl = Field(
        default="https://translate.googleapis.com", alias="TRANSLATE_API_URL"
    )
    translate_target: str = Field(default="it", alias="TRANSLATE_TARGET")
    translate_enabled: bool = Field(default=True, alias="TRANSLATE_ENABLED")

    genre_table_path: str | None = Field(default=None, alias="GENRE_TABLE_PATH")
    director_labels: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_DIRECTOR_LABELS, alias="DIRECTOR_LABELS"
    )
    writer_labels: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_WRITER_LABELS, alias="WRITER_LABELS"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("director_labels", "writer_labels", mode="before")
    @classmethod
    def _parse_role_labels(cls, value: object) -> tuple[str, ...]:
        """Accept comma separated strings as well as iterables."""

        if value is None:
            return ()
        if isinstance(value, str):
            raw_values = value.split(",")
        elif isinstance(value, Iterable):
            raw_values = [str(part) for part in value]
        else:
            raise TypeError("Role labels must be a string or iterable of strings")

        cleaned: list[str] = []
        for entry in raw_values:
            label = entry.strip().lower()
            if label and label not in cleaned:
                cleaned.append(label)
        if not cleaned:
            raise ValueError("At least one role label is required")
        return tuple(cleaned)

    @property
    def fetch_policy(self) -> FetchPolicy:
        return FetchPolicy(
            timeout=self.fetch_timeout,
            max_retries=self.fetch_max_retries,
            backoff_base=self.fetch_backoff_base,
        )

    @property
    def generative_fetch_policy(self) -> FetchPolicy:
        """Same retry budget, longer per-attempt timeout for model completions."""

        return FetchPolicy(
            timeout=self.generative_timeout,
            max_retries=self.fetch_max_retries,
            backoff_base=self.fetch_backoff_base,
        )

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
