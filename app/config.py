"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="CineCue", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=3000, alias="PORT")

    openrouter_api_key: str | None = Field(
        default=None, alias="OPENROUTER_API_KEY"
    )
    openrouter_model: str = Field(
        default="meta-llama/llama-3.3-70b-instruct:free", alias="OPENROUTER_MODEL"
    )
    openrouter_api_url: HttpUrl = Field(
        default="https://openrouter.ai/api/v1", alias="OPENROUTER_API_URL"
    )
    site_url: str = Field(
        default="http://localhost:3000",
        alias="SITE_URL",
        validation_alias=AliasChoices("SITE_URL", "VERCEL_URL"),
    )
    site_name: str = Field(default="CineCue", alias="SITE_NAME")

    model_temperature: float = Field(
        default=0.8, alias="MODEL_TEMPERATURE", ge=0.0, le=2.0
    )
    model_max_tokens: int = Field(
        default=1_500, alias="MODEL_MAX_TOKENS", ge=64, le=16_000
    )
    model_timeout_seconds: float = Field(
        default=60.0, alias="MODEL_TIMEOUT", ge=5.0, le=300.0
    )

    history_prompt_limit: int = Field(
        default=10, alias="HISTORY_PROMPT_LIMIT", ge=1, le=100
    )
    candidate_prompt_limit: int = Field(
        default=50, alias="CANDIDATE_PROMPT_LIMIT", ge=1, le=500
    )
    constrain_to_catalog: bool = Field(default=True, alias="CONSTRAIN_TO_CATALOG")
    single_flight: bool = Field(default=True, alias="SINGLE_FLIGHT")

    keepalive_secret: str | None = Field(default=None, alias="CRON_SECRET")

    database_url: str = Field(
        default="sqlite+aiosqlite:///./cinecue.db", alias="DATABASE_URL"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("openrouter_api_key", "keepalive_secret", mode="before")
    @classmethod
    def _strip_blank(cls, value: object) -> object:
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @field_validator("openrouter_model")
    @classmethod
    def _require_model(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("OPENROUTER_MODEL must not be blank")
        return cleaned

    @field_validator("site_url", mode="before")
    @classmethod
    def _ensure_scheme(cls, value: object) -> object:
        """Vercel exposes bare hostnames, so add a scheme when it is missing."""

        if isinstance(value, str):
            cleaned = value.strip()
            if cleaned and "://" not in cleaned:
                return f"https://{cleaned}"
            return cleaned or "http://localhost:3000"
        return value

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", protected_namespaces=()
    )


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
