"""
API Models - Pydantic models for request/response validation.

NO DICTIONARIES - All data structures are strongly typed.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Platform(str, Enum):
    """Store platform a purchase originates from."""

    ANDROID = "android"
    IOS = "ios"


class PurchaseFailureKind(str, Enum):
    """Why a purchase was declined."""

    INVALID_PLATFORM = "invalid_platform"
    VERIFICATION_ERROR = "verification_error"
    INVALID_PURCHASE = "invalid_purchase"
    UNKNOWN_PRODUCT = "unknown_product"
    DUPLICATE_PURCHASE = "duplicate_purchase"
    CREDITING_FAILED = "crediting_failed"


# ============================================================================
# Purchase Models
# ============================================================================


class PurchaseCreditsRequest(BaseModel):
    """
    Inbound purchase-credits request body.

    Wire keys are camelCase (``purchaseToken``, ``productId``). Platform stays a
    plain string here so an unsupported value is declined by the purchase flow
    instead of failing validation.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    purchase_token: str = Field(..., alias="purchaseToken", min_length=1, max_length=65536)
    product_id: str = Field(..., alias="productId", min_length=1, max_length=255)
    platform: str = Field(..., max_length=32)

    @field_validator("purchase_token")
    @classmethod
    def validate_token_not_blank(cls, v: str) -> str:
        """Reject blank tokens; the token is stored exactly as the store issued it."""
        if not v.strip():
            raise ValueError("Value cannot be blank")
        return v

    @field_validator("product_id")
    @classmethod
    def validate_product_not_blank(cls, v: str) -> str:
        """Strip whitespace and reject blank values."""
        if not v.strip():
            raise ValueError("Value cannot be blank")
        return v.strip()

    @field_validator("platform")
    @classmethod
    def normalize_platform(cls, v: str) -> str:
        """Lowercase platform for comparison."""
        return v.strip().lower()


class PurchaseCreditsResults(BaseModel):
    """Payload returned when credits were applied."""

    credit_balance: int
    credits_added: int


class PurchaseCreditsResponse(BaseModel):
    """
    Response envelope for the purchase-credits call.

    Matches what mobile clients already parse:
    {"message": ..., "error": bool, "code": int, "results": {...} | null}
    """

    message: str
    error: bool
    code: int
    results: PurchaseCreditsResults | None = None
    failure_kind: PurchaseFailureKind | None = None
