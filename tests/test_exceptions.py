"""
Tests for exception classes.

Covers the failure kind and message of every purchase error.
"""

import pytest

from iap_credits.exceptions import (
    CreditingFailedError,
    DuplicatePurchaseError,
    InvalidPlatformError,
    InvalidPurchaseError,
    PurchaseError,
    UnknownProductError,
    VerificationError,
)
from iap_credits.models.api import PurchaseFailureKind


class TestPurchaseError:
    """Tests for base PurchaseError."""

    @pytest.mark.parametrize(
        "error, kind",
        [
            (InvalidPlatformError("windows"), PurchaseFailureKind.INVALID_PLATFORM),
            (VerificationError("ios", "boom"), PurchaseFailureKind.VERIFICATION_ERROR),
            (InvalidPurchaseError("android", "credits_100"), PurchaseFailureKind.INVALID_PURCHASE),
            (UnknownProductError("credits_9999"), PurchaseFailureKind.UNKNOWN_PRODUCT),
            (DuplicatePurchaseError("tok-123"), PurchaseFailureKind.DUPLICATE_PURCHASE),
            (CreditingFailedError("db down"), PurchaseFailureKind.CREDITING_FAILED),
        ],
    )
    def test_each_error_has_one_kind(self, error: PurchaseError, kind: PurchaseFailureKind):
        """Every subclass maps to exactly its failure kind."""
        assert isinstance(error, PurchaseError)
        assert error.kind == kind
        assert str(error) == error.message

    def test_every_kind_is_covered(self):
        """No failure kind is left without an error class."""
        kinds = {cls.kind for cls in PurchaseError.__subclasses__()}
        assert kinds == set(PurchaseFailureKind)


class TestInvalidPlatformError:
    """Tests for InvalidPlatformError."""

    def test_message_names_platform(self):
        """Message quotes the rejected platform."""
        exc = InvalidPlatformError("windows")
        assert exc.platform == "windows"
        assert exc.message == "Invalid platform specified: 'windows'"


class TestVerificationError:
    """Tests for VerificationError."""

    def test_attributes(self):
        """Platform, reason and status are kept."""
        exc = VerificationError("ios", "Apple receipt verification failed with status 21003", 21003)
        assert exc.platform == "ios"
        assert exc.status_code == 21003
        assert "21003" in exc.message
        assert exc.message.startswith("ios verification error")

    def test_status_code_optional(self):
        """Status code defaults to None."""
        assert VerificationError("android", "Transport error").status_code is None


class TestOtherErrors:
    """Tests for remaining message formats."""

    def test_unknown_product(self):
        """Message names the product."""
        exc = UnknownProductError("credits_9999")
        assert exc.product_id == "credits_9999"
        assert exc.message == "Unknown product ID: credits_9999"

    def test_duplicate_does_not_echo_token(self):
        """Token is kept on the error but not in the message."""
        exc = DuplicatePurchaseError("secret-token-value")
        assert exc.purchase_token == "secret-token-value"
        assert "secret-token-value" not in exc.message

    def test_invalid_purchase(self):
        """Message names product and platform."""
        exc = InvalidPurchaseError("android", "credits_100")
        assert "credits_100" in exc.message
        assert "android" in exc.message

    def test_crediting_failed(self):
        """Reason is kept and prefixed."""
        exc = CreditingFailedError("User 1 not found")
        assert exc.reason == "User 1 not found"
        assert exc.message == "Crediting failed: User 1 not found"
