"""Application configuration using pydantic-settings."""
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Commerce / WordPress backend - shared with the storefront frontend
    api_base_url: str = Field(
        default="https://api.wasgeurtje.nl",
        validation_alias="NEXT_PUBLIC_WORDPRESS_API_URL",
    )
    wc_consumer_key: str = Field(default="", validation_alias="WC_CONSUMER_KEY")
    wc_consumer_secret: str = Field(default="", validation_alias="WC_CONSUMER_SECRET")
    request_timeout: float = Field(default=30.0, validation_alias="API_TIMEOUT")

    # Orders, loyalty and bundle lookups are cached for 5 minutes
    cache_ttl_seconds: float = Field(default=300.0, validation_alias="CACHE_TTL_SECONDS")

    # Device-local storage for the session, tombstones and popup state
    storage_backend: Literal["file", "redis"] = Field(
        default="file", validation_alias="STORAGE_BACKEND",
    )
    storage_dir: Path = Field(
        default=Path(".storefront"), validation_alias="STORAGE_DIR",
    )
    redis_url: str = Field(default="redis://localhost:6379", validation_alias="REDIS_URL")
    redis_enabled: bool = Field(default=True, validation_alias="REDIS_ENABLED")

    # Accounts that update their profile locally only (comma-separated)
    admin_emails_str: str = Field(
        default="admin@wasgeurtje.nl",
        validation_alias="ADMIN_EMAILS",
    )

    @model_validator(mode="after")
    def validate_cache_ttl(self) -> "Settings":
        """Reject a non-positive TTL, which would make every cached value stale."""
        if self.cache_ttl_seconds <= 0:
            raise ValueError(
                f"CACHE_TTL_SECONDS must be positive, got {self.cache_ttl_seconds}",
            )
        return self

    @property
    def admin_emails(self) -> set[str]:
        """Parse comma-separated admin emails into a lower-cased set."""
        if not self.admin_emails_str:
            return set()
        return {
            email.strip().lower()
            for email in self.admin_emails_str.split(",")
            if email.strip()
        }

    @property
    def wp_json_url(self) -> str:
        """Get the WordPress REST root."""
        return f"{self.api_base_url.rstrip('/')}/wp-json"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
