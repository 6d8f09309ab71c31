"""
Application Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - Critical config is validated at startup.
"""

import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


SUPPORTED_DATABASE_SCHEMES = ("postgresql", "postgres", "sqlite")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration - NO DEFAULT for production safety
    database_url: str = ""
    database_pool_size: int = 25
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600

    # Service identity
    service_name: str = "iap-credits"
    api_version: str = "0.1.0"

    # Google Play (Android publisher API)
    android_package_name: str = ""  # e.g., "com.example.messages"
    google_service_account_file: str = "google_service_account_key.json"
    android_publisher_api_base: str = "https://androidpublisher.googleapis.com/androidpublisher/v3"

    # Apple App Store (verifyReceipt)
    apple_shared_secret: str = ""
    apple_production_url: str = "https://buy.itunes.apple.com/verifyReceipt"
    apple_sandbox_url: str = "https://sandbox.itunes.apple.com/verifyReceipt"

    # Upper bound for every outbound store call, in seconds
    verification_timeout_seconds: float = 5.0

    # Optional JSON file {"product_id": credits, ...}; default catalog otherwise
    product_catalog_file: str | None = None

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The service MUST NOT start if critical config is missing.
        """
        errors: list[str] = []

        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(SUPPORTED_DATABASE_SCHEMES):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL or SQLite URL, got: {self.database_url[:20]}..."
            )

        if not self.android_package_name.strip():
            errors.append("ANDROID_PACKAGE_NAME is required but empty or missing")

        if self.verification_timeout_seconds <= 0:
            errors.append(
                f"VERIFICATION_TIMEOUT_SECONDS must be positive, got: {self.verification_timeout_seconds}"
            )

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - SERVICE CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def is_sqlite(self) -> bool:
        """SQLite engines take no pool sizing arguments."""
        return self.database_url.startswith("sqlite")


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
