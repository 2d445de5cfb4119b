"""
Application configuration using Pydantic Settings.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderSettings(BaseSettings):
    """Connection settings shared by every news provider."""

    base_url: str
    api_key: Optional[str] = Field(default=None)
    timeout_seconds: float = Field(default=30.0, gt=0)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


class NewsApiSettings(ProviderSettings):
    model_config = SettingsConfigDict(env_prefix="NEWSAPI_", env_file=".env", extra="ignore")

    base_url: str = "https://newsapi.org/v2"


class GuardianSettings(ProviderSettings):
    model_config = SettingsConfigDict(env_prefix="GUARDIAN_", env_file=".env", extra="ignore")

    base_url: str = "https://content.guardianapis.com"


class NytSettings(ProviderSettings):
    model_config = SettingsConfigDict(env_prefix="NYT_", env_file=".env", extra="ignore")

    base_url: str = "https://api.nytimes.com/svc"


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "News Aggregator"
    app_version: str = "0.1.0"
    debug: bool = Field(default=False)
    environment: Literal["development", "staging", "production"] = "development"

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Logging
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True, description="Render logs as JSON lines")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./news_aggregator.db",
        description="Async database URL (SQLAlchemy format)",
    )

    # Providers, in the order their results are concatenated
    enabled_providers: list[str] = Field(default=["newsapi", "guardian", "nyt"])
    newsapi: NewsApiSettings = Field(default_factory=NewsApiSettings)
    guardian: GuardianSettings = Field(default_factory=GuardianSettings)
    nyt: NytSettings = Field(default_factory=NytSettings)

    # Freshness windows
    freshness_headlines_minutes: int = Field(
        default=15,
        ge=1,
        description="Minutes before stored headlines are considered stale",
    )
    freshness_search_minutes: int = Field(
        default=60,
        ge=1,
        description="Minutes before stored search results are considered stale",
    )

    # Background refresh
    refresh_job_tries: int = Field(default=3, ge=1)
    refresh_job_timeout_seconds: float = Field(default=300.0, gt=0)

    # Pagination
    default_page_size: int = Field(default=20, ge=1, le=100)
    max_page_size: int = Field(default=100, ge=1, le=100)

    def provider_settings(self, provider_key: str) -> ProviderSettings:
        """Get the connection settings for a provider key."""
        settings = getattr(self, provider_key, None)
        if not isinstance(settings, ProviderSettings):
            raise KeyError(provider_key)
        return settings


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
