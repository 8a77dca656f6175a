"""Tests for application configuration."""
import pytest
from pydantic import ValidationError

from core.config import Settings


def _settings(**overrides: object) -> Settings:
    values: dict[str, object] = {
        "_env_file": None,
        "database_url": "postgresql://test@localhost/test",
        "VITE_DEV_MODE": "false",
    }
    values.update(overrides)
    return Settings(**values)


class TestCorsOriginsParsing:
    """Tests for CORS origins parsing from environment variables."""

    def test_parse_multiple_origins_comma_separated(self) -> None:
        """Multiple comma-separated origins are parsed and trimmed."""
        settings = _settings(CORS_ORIGINS=" http://localhost:5173 , https://example.com,")
        assert settings.cors_origins == ["http://localhost:5173", "https://example.com"]

    def test_parse_empty_string(self) -> None:
        """Empty string results in empty list."""
        assert _settings(CORS_ORIGINS="").cors_origins == []


class TestBookmarkSettings:
    """Tests for bookmark list settings."""

    def test_defaults(self) -> None:
        """Defaults match the documented page size, cache TTL, and bulk limit."""
        settings = _settings()
        assert settings.bookmark_default_page_size == 20
        assert settings.bookmark_max_page_size == 100
        assert settings.bookmark_list_cache_ttl == 60
        assert settings.bookmark_max_bulk_remove == 500

    def test_overrides_from_aliases(self) -> None:
        """Settings can be overridden by their environment names."""
        settings = _settings(BOOKMARK_MAX_PAGE_SIZE="50", BOOKMARK_LIST_CACHE_TTL="0")
        assert settings.bookmark_max_page_size == 50
        assert settings.bookmark_list_cache_ttl == 0

    def test_page_size_must_be_positive(self) -> None:
        """A zero page size is rejected."""
        with pytest.raises(ValidationError):
            _settings(BOOKMARK_DEFAULT_PAGE_SIZE="0")


class TestDevModeSecurity:
    """DEV_MODE bypasses auth, so it is restricted to local databases."""

    @pytest.mark.parametrize(
        "database_url",
        [
            "postgresql://user@localhost:5432/db",
            "postgresql+asyncpg://user@127.0.0.1/db",
            "sqlite+aiosqlite:///./local.db",
        ],
    )
    def test_dev_mode_allowed_locally(self, database_url: str) -> None:
        """Local databases may be combined with DEV_MODE."""
        settings = _settings(database_url=database_url, VITE_DEV_MODE="true")
        assert settings.dev_mode is True

    def test_dev_mode_rejected_for_remote_database(self) -> None:
        """A remote database with DEV_MODE fails validation."""
        with pytest.raises(ValidationError, match="DEV_MODE cannot be enabled"):
            _settings(database_url="postgresql://user@db.example.com/prod", VITE_DEV_MODE="true")

    def test_auth0_urls(self) -> None:
        """Issuer and JWKS URLs derive from the Auth0 domain."""
        settings = _settings(VITE_AUTH0_DOMAIN="tenant.auth0.com")
        assert settings.auth0_issuer == "https://tenant.auth0.com/"
        assert settings.auth0_jwks_url == "https://tenant.auth0.com/.well-known/jwks.json"
