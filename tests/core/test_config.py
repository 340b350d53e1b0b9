"""Tests for application configuration."""
from pathlib import Path

import pytest
from pydantic import ValidationError

from core.config import Settings


class TestSettingsDefaults:
    """Tests for values used when nothing is configured."""

    def test__defaults__cache_ttl_is_five_minutes(self) -> None:
        """Cached resources are served for 300 seconds by default."""
        settings = Settings(_env_file=None)
        assert settings.cache_ttl_seconds == 300.0

    def test__defaults__file_storage(self) -> None:
        """File storage is the default backend."""
        settings = Settings(_env_file=None)
        assert settings.storage_backend == "file"
        assert settings.storage_dir == Path(".storefront")


class TestSettingsFromEnvironment:
    """Tests for loading settings from environment variables."""

    def test__env__aliases_are_read(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment variable names shared with the storefront are honoured."""
        monkeypatch.setenv("NEXT_PUBLIC_WORDPRESS_API_URL", "https://api.example.nl")
        monkeypatch.setenv("WC_CONSUMER_KEY", "ck_env")
        monkeypatch.setenv("CACHE_TTL_SECONDS", "60")
        monkeypatch.setenv("STORAGE_BACKEND", "redis")

        settings = Settings(_env_file=None)

        assert settings.api_base_url == "https://api.example.nl"
        assert settings.wc_consumer_key == "ck_env"
        assert settings.cache_ttl_seconds == 60.0
        assert settings.storage_backend == "redis"

    def test__env__unknown_storage_backend_rejected(
        self, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Only file and redis storage backends are accepted."""
        monkeypatch.setenv("STORAGE_BACKEND", "sqlite")
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


class TestCacheTtlValidation:
    """Tests for the cache TTL check."""

    @pytest.mark.parametrize("ttl", [0, -5])
    def test__cache_ttl__non_positive_rejected(self, ttl: float) -> None:
        """A TTL that would make every entry stale is refused."""
        with pytest.raises(ValidationError, match="CACHE_TTL_SECONDS must be positive"):
            Settings(_env_file=None, cache_ttl_seconds=ttl)


class TestDerivedSettings:
    """Tests for properties derived from raw settings."""

    def test__wp_json_url__strips_trailing_slash(self) -> None:
        """The REST root is the base URL plus /wp-json."""
        settings = Settings(_env_file=None, api_base_url="https://shop.test/")
        assert settings.wp_json_url == "https://shop.test/wp-json"

    def test__admin_emails__parsed_and_lowercased(self) -> None:
        """Comma-separated admin emails become a lower-cased set."""
        settings = Settings(
            _env_file=None,
            admin_emails_str=" Admin@Wasgeurtje.nl , ops@example.com,,",
        )
        assert settings.admin_emails == {"admin@wasgeurtje.nl", "ops@example.com"}

    def test__admin_emails__empty_string(self) -> None:
        """No admin emails configured results in an empty set."""
        settings = Settings(_env_file=None, admin_emails_str="")
        assert settings.admin_emails == set()
