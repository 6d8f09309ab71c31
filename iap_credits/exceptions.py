"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.

Every purchase failure maps to exactly one PurchaseFailureKind, so the
purchase flow can turn any raised error into a typed result without
inspecting message strings.
"""

from typing import ClassVar

from iap_credits.models.api import PurchaseFailureKind


class PurchaseError(Exception):
    """Base exception for all purchase errors."""

    kind: ClassVar[PurchaseFailureKind]

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidPlatformError(PurchaseError):
    """Raised when the request names a platform other than android or ios."""

    kind = PurchaseFailureKind.INVALID_PLATFORM

    def __init__(self, platform: str) -> None:
        self.platform = platform
        super().__init__(f"Invalid platform specified: {platform!r}")


class VerificationError(PurchaseError):
    """
    Raised when the store could not give a verdict.

    Network failures, timeouts, non-2xx responses, malformed bodies and
    credential problems all land here. Distinct from InvalidPurchaseError,
    which means the store answered and said no.
    """

    kind = PurchaseFailureKind.VERIFICATION_ERROR

    def __init__(self, platform: str, reason: str, status_code: int | None = None) -> None:
        self.platform = platform
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{platform} verification error: {reason}")


class InvalidPurchaseError(PurchaseError):
    """Raised when the store reports the purchase as not purchased."""

    kind = PurchaseFailureKind.INVALID_PURCHASE

    def __init__(self, platform: str, product_id: str) -> None:
        self.platform = platform
        self.product_id = product_id
        super().__init__(f"Invalid purchase token for product {product_id} on {platform}")


class UnknownProductError(PurchaseError):
    """Raised when a product ID has no credit mapping."""

    kind = PurchaseFailureKind.UNKNOWN_PRODUCT

    def __init__(self, product_id: str) -> None:
        self.product_id = product_id
        super().__init__(f"Unknown product ID: {product_id}")


class DuplicatePurchaseError(PurchaseError):
    """Raised when a purchase token has already been consumed."""

    kind = PurchaseFailureKind.DUPLICATE_PURCHASE

    def __init__(self, purchase_token: str) -> None:
        self.purchase_token = purchase_token
        super().__init__("Purchase token has already been used")


class CreditingFailedError(PurchaseError):
    """Raised when the balance update or transaction record could not be persisted."""

    kind = PurchaseFailureKind.CREDITING_FAILED

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Crediting failed: {reason}")
