"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="VinylMatch", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    discogs_consumer_key: str | None = Field(
        default=None, alias="DISCOGS_CONSUMER_KEY"
    )
    discogs_consumer_secret: str | None = Field(
        default=None, alias="DISCOGS_CONSUMER_SECRET"
    )
    discogs_api_url: HttpUrl = Field(
        default="https://api.discogs.com", alias="DISCOGS_API_URL"
    )
    discogs_user_agent: str | None = Field(default=None, alias="DISCOGS_USER_AGENT")
    discogs_timeout_seconds: float = Field(
        default=20.0, alias="DISCOGS_TIMEOUT", gt=0, le=120
    )
    discogs_max_retries: int = Field(
        default=2, alias="DISCOGS_MAX_RETRIES", ge=0, le=10
    )

    collection_page_size: int = Field(
        default=100, alias="COLLECTION_PAGE_SIZE", ge=1, le=100
    )
    collection_max_pages: int = Field(
        default=5, alias="COLLECTION_MAX_PAGES", ge=1, le=50
    )
    page_delay_seconds: float = Field(
        default=0.1, alias="PAGE_DELAY", ge=0, le=10
    )
    country_lookup_limit: int = Field(
        default=50, alias="COUNTRY_LOOKUP_LIMIT", ge=1, le=500
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("discogs_consumer_key", "discogs_consumer_secret", mode="before")
    @classmethod
    def _blank_as_missing(cls, value: object) -> object:
        """Treat empty credential strings as unset."""

        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def has_consumer_credentials(self) -> bool:
        return bool(self.discogs_consumer_key and self.discogs_consumer_secret)

    @property
    def user_agent(self) -> str:
        """Return the User-Agent Discogs requires on every request."""

        if self.discogs_user_agent:
            return self.discogs_user_agent
        return f"{self.app_name}/1.0 (vinylmatch)"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
