"""
Apple App Store receipt verifier.

Uses the verifyReceipt endpoint with the app's shared secret.
https://developer.apple.com/documentation/appstorereceipts/verifyreceipt
"""

import httpx
from structlog import get_logger

from iap_credits.exceptions import VerificationError
from iap_credits.models.api import Platform

logger = get_logger(__name__)

PRODUCTION_VERIFY_URL = "https://buy.itunes.apple.com/verifyReceipt"
SANDBOX_VERIFY_URL = "https://sandbox.itunes.apple.com/verifyReceipt"

STATUS_OK = 0
# Sandbox receipt was sent to the production endpoint
STATUS_SANDBOX_RECEIPT = 21007


class AppleReceiptVerifier:
    """
    Apple receipt verifier.

    Production first; a sandbox receipt (status 21007) is retried once
    against the sandbox endpoint.
    """

    platform = Platform.IOS

    def __init__(
        self,
        shared_secret: str,
        production_url: str = PRODUCTION_VERIFY_URL,
        sandbox_url: str = SANDBOX_VERIFY_URL,
        timeout_seconds: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize Apple receipt verifier.

        Args:
            shared_secret: App-specific shared secret from App Store Connect
            production_url: verifyReceipt production endpoint
            sandbox_url: verifyReceipt sandbox endpoint
            timeout_seconds: Upper bound on each request
            http_client: Shared client; a short-lived one is used per call if omitted
        """
        self.shared_secret = shared_secret
        self.production_url = production_url
        self.sandbox_url = sandbox_url
        self.timeout_seconds = timeout_seconds
        self._http_client = http_client

        logger.info("apple_receipt_verifier_initialized", production_url=production_url)

    async def _send(self, url: str, payload: dict[str, object]) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(url, json=payload, timeout=self.timeout_seconds)
        async with httpx.AsyncClient() as client:
            return await client.post(url, json=payload, timeout=self.timeout_seconds)

    async def _post_receipt(self, url: str, payload: dict[str, object]) -> dict[str, object]:
        """POST the receipt and return the decoded body."""
        try:
            response = await self._send(url, payload)
        except httpx.TimeoutException as exc:
            logger.error("apple_receipt_verification_timeout", url=url, timeout=self.timeout_seconds)
            raise VerificationError(
                self.platform.value, f"Request timed out after {self.timeout_seconds}s"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("apple_receipt_transport_error", url=url, error=str(exc))
            raise VerificationError(self.platform.value, f"Transport error: {exc}") from exc

        if not response.is_success:
            logger.error(
                "apple_receipt_http_error",
                url=url,
                status=response.status_code,
                error=response.text[:500],
            )
            raise VerificationError(
                self.platform.value,
                f"App Store returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise VerificationError(self.platform.value, "Malformed response body") from exc
        if not isinstance(body, dict):
            raise VerificationError(self.platform.value, "Malformed response body")
        return body

    def _status(self, body: dict[str, object]) -> int:
        status = body.get("status")
        if type(status) is not int:
            raise VerificationError(self.platform.value, "Response has no integer status")
        return status

    async def verify(self, purchase_token: str, product_id: str) -> bool:
        """
        Verify an App Store receipt.

        Returns:
            True if the receipt verifies and lists product_id among its
            in-app purchases, False if it verifies but does not

        Raises:
            VerificationError: Transport failure, malformed response, or a
                non-zero receipt status (the status is kept on the error)
        """
        payload: dict[str, object] = {
            "receipt-data": purchase_token,
            "password": self.shared_secret,
            "exclude-old-transactions": True,
        }

        logger.info("verifying_apple_receipt", product_id=product_id)

        body = await self._post_receipt(self.production_url, payload)
        status = self._status(body)

        if status == STATUS_SANDBOX_RECEIPT:
            logger.info("apple_receipt_sandbox_retry", product_id=product_id)
            body = await self._post_receipt(self.sandbox_url, payload)
            status = self._status(body)

        if status != STATUS_OK:
            logger.error("apple_receipt_verification_failed", status=status)
            raise VerificationError(
                self.platform.value,
                f"Apple receipt verification failed with status {status}",
                status_code=status,
            )

        receipt = body.get("receipt")
        in_app = receipt.get("in_app") if isinstance(receipt, dict) else None
        if not isinstance(in_app, list):
            in_app = []

        is_valid = any(
            isinstance(item, dict) and item.get("product_id") == product_id for item in in_app
        )

        if not is_valid:
            logger.warning(
                "apple_receipt_product_mismatch",
                product_id=product_id,
                receipt_products=[item.get("product_id") for item in in_app if isinstance(item, dict)],
            )
        else:
            logger.info("apple_receipt_verified", product_id=product_id)

        return is_valid
