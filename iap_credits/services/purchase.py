"""
Purchase Service - Verifies a store purchase and issues credits at most once.

NO DICTIONARIES - Every outcome is a typed PurchaseResult.
"""

from uuid import UUID

from structlog import get_logger

from iap_credits.exceptions import (
    DuplicatePurchaseError,
    InvalidPlatformError,
    InvalidPurchaseError,
    PurchaseError,
    VerificationError,
)
from iap_credits.models.api import PurchaseCreditsRequest
from iap_credits.models.domain import CreditResult, PurchaseRequest, PurchaseResult
from iap_credits.observability import log_context, metrics, track_verification
from iap_credits.services.ledger import TransactionLedger
from iap_credits.services.product_catalog import ProductCatalog
from iap_credits.services.purchase_verifier import VerifierRegistry

logger = get_logger(__name__)


class PurchaseService:
    """
    Purchase flow for one authenticated user's request.

    Steps:
    1. Validate platform (declined without an audit record)
    2. Resolve product credits from the catalog
    3. Reject tokens that were already consumed, before calling the store
    4. Verify with the store
    5. Credit balance and record the successful transaction atomically

    Any failure from step 2 onward is written to failed_transactions before
    the declined result is returned.
    """

    def __init__(
        self,
        catalog: ProductCatalog,
        verifiers: VerifierRegistry,
        ledger: TransactionLedger,
    ) -> None:
        self.catalog = catalog
        self.verifiers = verifiers
        self.ledger = ledger

    async def process_purchase(
        self,
        user_id: UUID,
        request: PurchaseCreditsRequest,
    ) -> PurchaseResult:
        """
        Run the purchase flow.

        Never raises for a declined purchase; the failure kind is on the
        returned result.
        """
        with log_context(
            user_id=str(user_id),
            product_id=request.product_id,
            purchase_token_prefix=request.purchase_token[:20],
        ):
            try:
                purchase = PurchaseRequest.from_api(request)
            except InvalidPlatformError as exc:
                logger.warning("purchase_invalid_platform", platform=request.platform)
                metrics.record_purchase("unknown", exc.kind.value)
                return PurchaseResult.declined(exc)

            try:
                credit = await self._verify_and_credit(user_id, purchase)
            except PurchaseError as exc:
                logger.warning(
                    "purchase_declined",
                    platform=purchase.platform.value,
                    failure_kind=exc.kind.value,
                    error=exc.message,
                )
                await self.ledger.record_failure(
                    user_id=user_id,
                    purchase_token=purchase.purchase_token,
                    error_kind=exc.kind,
                    error_message=exc.message,
                )
                metrics.record_purchase(purchase.platform.value, exc.kind.value)
                return PurchaseResult.declined(exc)

            logger.info(
                "purchase_credited",
                platform=purchase.platform.value,
                credits_added=credit.transaction.credit_amount,
                balance_after=credit.balance_after,
                transaction_id=credit.transaction.transaction_id,
            )
            metrics.record_purchase(purchase.platform.value, "success")
            metrics.record_credits_issued(purchase.platform.value, credit.transaction.credit_amount)
            return PurchaseResult.accepted(credit)

    async def _verify_and_credit(self, user_id: UUID, purchase: PurchaseRequest) -> CreditResult:
        product = self.catalog.get_product(purchase.product_id)

        existing = await self.ledger.find_successful(purchase.purchase_token)
        if existing is not None:
            logger.info(
                "purchase_token_already_consumed",
                transaction_id=existing.transaction_id,
                consumed_by=str(existing.user_id),
            )
            raise DuplicatePurchaseError(purchase.purchase_token)

        is_valid = await self._verify(purchase)
        if not is_valid:
            raise InvalidPurchaseError(purchase.platform.value, purchase.product_id)

        return await self.ledger.apply_credit(user_id, purchase, product)

    async def _verify(self, purchase: PurchaseRequest) -> bool:
        verifier = self.verifiers.for_platform(purchase.platform)
        with track_verification(purchase.platform.value):
            try:
                return await verifier.verify(purchase.purchase_token, purchase.product_id)
            except VerificationError:
                raise
            except Exception as exc:
                logger.exception("purchase_verification_unexpected_error")
                raise VerificationError(
                    purchase.platform.value, f"Unexpected verification failure: {exc}"
                ) from exc
