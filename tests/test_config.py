"""
Tests for application settings.

Settings must refuse to load when critical configuration is missing.
"""

import pytest

from iap_credits.config import ConfigurationError, Settings

SQLITE_URL = "sqlite+aiosqlite:///:memory:"


class TestSettingsValidation:
    """Tests for fail-fast validation."""

    def test_valid_postgres_url(self):
        """PostgreSQL URLs are accepted."""
        config = Settings(database_url="postgresql+asyncpg://user:pass@db/iap")
        assert config.is_sqlite is False

    def test_valid_sqlite_url(self):
        """SQLite URLs are accepted."""
        assert Settings(database_url=SQLITE_URL).is_sqlite is True

    def test_empty_database_url(self):
        """Missing DATABASE_URL stops startup."""
        with pytest.raises(ConfigurationError, match="DATABASE_URL is required"):
            Settings(database_url="")

    def test_unsupported_database_url(self):
        """Other databases are refused."""
        with pytest.raises(ConfigurationError, match="PostgreSQL or SQLite"):
            Settings(database_url="mysql://user:pass@db/iap")

    @pytest.mark.parametrize("package_name", ["", "   "])
    def test_missing_android_package_name(self, package_name: str):
        """Empty ANDROID_PACKAGE_NAME stops startup instead of failing at assembly."""
        with pytest.raises(ConfigurationError, match="ANDROID_PACKAGE_NAME is required"):
            Settings(database_url=SQLITE_URL, android_package_name=package_name)

    @pytest.mark.parametrize("timeout", [0, -1.0])
    def test_non_positive_timeout(self, timeout: float):
        """Verification timeout must be positive."""
        with pytest.raises(ConfigurationError, match="VERIFICATION_TIMEOUT_SECONDS"):
            Settings(database_url=SQLITE_URL, verification_timeout_seconds=timeout)

    def test_all_errors_reported_together(self, capsys):
        """Every problem is listed, and the banner goes to stderr."""
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(database_url="", verification_timeout_seconds=0)

        assert "DATABASE_URL" in str(exc_info.value)
        assert "VERIFICATION_TIMEOUT_SECONDS" in str(exc_info.value)
        assert "SERVICE CANNOT START" in capsys.readouterr().err


class TestSettingsDefaults:
    """Tests for default values."""

    def test_five_second_timeout(self):
        """Store calls default to a five second bound."""
        assert Settings(database_url=SQLITE_URL).verification_timeout_seconds == 5.0

    def test_environment_overrides(self, monkeypatch):
        """Values are read from the environment."""
        monkeypatch.setenv("VERIFICATION_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("PRODUCT_CATALOG_FILE", "/etc/iap/products.json")

        config = Settings(database_url=SQLITE_URL)

        assert config.verification_timeout_seconds == 2.5
        assert config.product_catalog_file == "/etc/iap/products.json"
