"""
Purchase Verifier Protocol - Store-agnostic interface.

NO DICTIONARIES - Verifiers are looked up by Platform through a typed registry.
"""

from typing import Protocol

import httpx

from iap_credits.config import Settings
from iap_credits.exceptions import InvalidPlatformError
from iap_credits.models.api import Platform
from iap_credits.services.apple_receipt_verifier import AppleReceiptVerifier
from iap_credits.services.google_credentials import ServiceAccountTokenProvider
from iap_credits.services.google_play_verifier import GooglePlayVerifier


class PurchaseVerifier(Protocol):
    """
    Purchase verifier protocol.

    Implemented by GooglePlayVerifier and AppleReceiptVerifier.
    """

    platform: Platform

    async def verify(self, purchase_token: str, product_id: str) -> bool:
        """
        Ask the store whether a purchase is genuine.

        Args:
            purchase_token: Store-issued token (Android) or receipt blob (iOS)
            product_id: Product the client claims to have bought

        Returns:
            True if the store confirms the purchase, False if it does not

        Raises:
            VerificationError: If the store could not be asked or answered garbage
        """
        ...


class VerifierRegistry:
    """Selects the verifier for a platform."""

    def __init__(self, android: PurchaseVerifier, ios: PurchaseVerifier) -> None:
        self._verifiers: dict[Platform, PurchaseVerifier] = {
            Platform.ANDROID: android,
            Platform.IOS: ios,
        }

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> "VerifierRegistry":
        """Build both verifiers from configuration."""
        android = GooglePlayVerifier(
            token_provider=ServiceAccountTokenProvider(
                settings.google_service_account_file,
                timeout_seconds=settings.verification_timeout_seconds,
            ),
            package_name=settings.android_package_name,
            api_base=settings.android_publisher_api_base,
            timeout_seconds=settings.verification_timeout_seconds,
            http_client=http_client,
        )
        ios = AppleReceiptVerifier(
            shared_secret=settings.apple_shared_secret,
            production_url=settings.apple_production_url,
            sandbox_url=settings.apple_sandbox_url,
            timeout_seconds=settings.verification_timeout_seconds,
            http_client=http_client,
        )
        return cls(android=android, ios=ios)

    def for_platform(self, platform: Platform) -> PurchaseVerifier:
        """
        Get the verifier for a platform.

        Raises:
            InvalidPlatformError: If no verifier is registered
        """
        verifier = self._verifiers.get(platform)
        if verifier is None:
            raise InvalidPlatformError(str(platform))
        return verifier
