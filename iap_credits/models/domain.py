"""
Domain Models - Internal business logic models using dataclasses.

NO DICTIONARIES - All data structures are strongly typed immutable dataclasses.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from iap_credits.exceptions import InvalidPlatformError, PurchaseError
from iap_credits.models.api import (
    Platform,
    PurchaseCreditsRequest,
    PurchaseCreditsResponse,
    PurchaseCreditsResults,
    PurchaseFailureKind,
)


@dataclass(frozen=True)
class PurchaseRequest:
    """Validated purchase request for a known platform."""

    purchase_token: str
    product_id: str
    platform: Platform

    def __post_init__(self) -> None:
        """Validate purchase request fields."""
        if not self.purchase_token:
            raise ValueError("Purchase token required")
        if not self.product_id:
            raise ValueError("Product ID required")

    @classmethod
    def from_api(cls, request: PurchaseCreditsRequest) -> "PurchaseRequest":
        """
        Build from the inbound request.

        Raises:
            InvalidPlatformError: If platform is not android or ios
        """
        try:
            platform = Platform(request.platform)
        except ValueError as exc:
            raise InvalidPlatformError(request.platform) from exc
        return cls(
            purchase_token=request.purchase_token,
            product_id=request.product_id,
            platform=platform,
        )


@dataclass(frozen=True)
class SuccessfulTransactionData:
    """Immutable snapshot of a persisted successful transaction."""

    transaction_id: int
    user_id: UUID
    purchase_token: str
    product_id: str
    credit_amount: int
    platform: Platform
    created_at: datetime


@dataclass(frozen=True)
class FailedTransactionData:
    """Immutable snapshot of a persisted failed transaction."""

    transaction_id: int
    user_id: UUID | None
    purchase_token: str | None
    error_kind: PurchaseFailureKind | None
    error_message: str
    created_at: datetime


@dataclass(frozen=True)
class CreditResult:
    """Outcome of applying credits to a user balance."""

    transaction: SuccessfulTransactionData
    balance_before: int
    balance_after: int

    def __post_init__(self) -> None:
        """Balance must move by exactly the credited amount."""
        if self.balance_after - self.balance_before != self.transaction.credit_amount:
            raise ValueError(
                f"Balance delta {self.balance_after - self.balance_before} does not match "
                f"credit amount {self.transaction.credit_amount}"
            )


@dataclass(frozen=True)
class PurchaseResult:
    """
    Typed outcome of one purchase attempt.

    Either success with the new balance, or a declined purchase carrying the
    failure kind and message.
    """

    success: bool
    message: str
    failure_kind: PurchaseFailureKind | None = None
    credit_balance: int | None = None
    credits_added: int = 0
    transaction: SuccessfulTransactionData | None = None

    @classmethod
    def accepted(cls, credit: CreditResult) -> "PurchaseResult":
        """Build a success result from a credit application."""
        return cls(
            success=True,
            message="Credits purchased successfully.",
            credit_balance=credit.balance_after,
            credits_added=credit.transaction.credit_amount,
            transaction=credit.transaction,
        )

    @classmethod
    def declined(cls, error: PurchaseError) -> "PurchaseResult":
        """Build a declined result from a purchase error."""
        return cls(success=False, message=error.message, failure_kind=error.kind)

    def to_response(self) -> PurchaseCreditsResponse:
        """Render the client-facing response envelope."""
        if not self.success:
            return PurchaseCreditsResponse(
                message=self.message,
                error=True,
                code=400,
                results=None,
                failure_kind=self.failure_kind,
            )
        return PurchaseCreditsResponse(
            message=self.message,
            error=False,
            code=200,
            results=PurchaseCreditsResults(
                credit_balance=self.credit_balance if self.credit_balance is not None else 0,
                credits_added=self.credits_added,
            ),
        )
