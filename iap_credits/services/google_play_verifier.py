"""
Google Play purchase verifier.

Checks a one-time product purchase against the Android publisher API.
"""

from urllib.parse import quote

import httpx
from structlog import get_logger

from iap_credits.exceptions import VerificationError
from iap_credits.models.api import Platform
from iap_credits.services.google_credentials import AccessTokenProvider

logger = get_logger(__name__)

# purchaseState: 0 = purchased, 1 = canceled, 2 = pending
PURCHASE_STATE_PURCHASED = 0

DEFAULT_PUBLISHER_API_BASE = "https://androidpublisher.googleapis.com/androidpublisher/v3"


class GooglePlayVerifier:
    """
    Google Play In-App Billing verifier.

    Every call acquires its own bearer token, then reads the purchase status.
    """

    platform = Platform.ANDROID

    def __init__(
        self,
        token_provider: AccessTokenProvider,
        package_name: str,
        api_base: str = DEFAULT_PUBLISHER_API_BASE,
        timeout_seconds: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize Google Play verifier.

        Args:
            token_provider: Source of androidpublisher bearer tokens
            package_name: Android package name (e.g., 'com.example.messages')
            api_base: Publisher API base URL
            timeout_seconds: Upper bound on the status request
            http_client: Shared client; a short-lived one is used per call if omitted
        """
        if not package_name:
            raise ValueError("Package name required")
        self.token_provider = token_provider
        self.package_name = package_name
        self.api_base = api_base.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._http_client = http_client

        logger.info("google_play_verifier_initialized", package_name=package_name)

    def purchase_url(self, purchase_token: str, product_id: str) -> str:
        """Build the purchase-status URL for one token."""
        return (
            f"{self.api_base}/applications/{quote(self.package_name, safe='')}"
            f"/purchases/products/{quote(product_id, safe='')}"
            f"/tokens/{quote(purchase_token, safe='')}"
        )

    async def _get(self, url: str, headers: dict[str, str]) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.get(url, headers=headers, timeout=self.timeout_seconds)
        async with httpx.AsyncClient() as client:
            return await client.get(url, headers=headers, timeout=self.timeout_seconds)

    async def verify(self, purchase_token: str, product_id: str) -> bool:
        """
        Verify a one-time product purchase with Google Play.

        Returns:
            True if purchaseState is 0 (purchased), False otherwise

        Raises:
            VerificationError: If no verdict could be obtained
        """
        access_token = await self.token_provider.get_access_token()

        logger.info(
            "verifying_google_play_purchase",
            product_id=product_id,
            package_name=self.package_name,
        )

        try:
            response = await self._get(
                self.purchase_url(purchase_token, product_id),
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.TimeoutException as exc:
            logger.error("google_play_verification_timeout", timeout=self.timeout_seconds)
            raise VerificationError(
                self.platform.value, f"Request timed out after {self.timeout_seconds}s"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("google_play_verification_transport_error", error=str(exc))
            raise VerificationError(self.platform.value, f"Transport error: {exc}") from exc

        if not response.is_success:
            logger.error(
                "google_play_verification_failed",
                status=response.status_code,
                error=response.text[:500],
            )
            if response.status_code == 404:
                reason = "Purchase not found or invalid token"
            elif response.status_code == 410:
                reason = "Purchase token expired"
            else:
                reason = f"Google Play API error: HTTP {response.status_code}"
            raise VerificationError(self.platform.value, reason, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            raise VerificationError(self.platform.value, "Malformed response body") from exc
        if not isinstance(body, dict):
            raise VerificationError(self.platform.value, "Malformed response body")

        purchase_state = body.get("purchaseState")
        # bool is an int subclass; a JSON false must not read as state 0
        is_valid = type(purchase_state) is int and purchase_state == PURCHASE_STATE_PURCHASED

        logger.info(
            "google_play_purchase_checked",
            order_id=body.get("orderId"),
            product_id=product_id,
            purchase_state=purchase_state,
            is_valid=is_valid,
        )

        return is_valid
