"""
Transaction Ledger - Idempotency guard, credit application and failure audit.

NO DICTIONARIES - All operations use strongly typed domain models.

The existence check in find_successful and the insert in apply_credit are
not atomic. Two concurrent submissions of one token can both pass the check;
the unique index on successful_transactions.purchase_token rejects the
second insert, which is reported as a duplicate.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog import get_logger

from iap_credits.db.models import FailedTransaction, SuccessfulTransaction, User, utc_now
from iap_credits.exceptions import CreditingFailedError, DuplicatePurchaseError
from iap_credits.models.api import PurchaseFailureKind
from iap_credits.models.domain import (
    CreditResult,
    FailedTransactionData,
    PurchaseRequest,
    SuccessfulTransactionData,
)
from iap_credits.observability.metrics import metrics
from iap_credits.services.product_catalog import CreditProduct

logger = get_logger(__name__)


def _to_successful_data(row: SuccessfulTransaction) -> SuccessfulTransactionData:
    return SuccessfulTransactionData(
        transaction_id=row.id,
        user_id=row.user_id,
        purchase_token=row.purchase_token,
        product_id=row.product_id,
        credit_amount=row.credit_amount,
        platform=row.platform,
        created_at=row.created_at,
    )


def _to_failed_data(row: FailedTransaction) -> FailedTransactionData:
    return FailedTransactionData(
        transaction_id=row.id,
        user_id=row.user_id,
        purchase_token=row.purchase_token,
        error_kind=row.error_kind,
        error_message=row.error_message,
        created_at=row.created_at,
    )


class TransactionLedger:
    """
    Ledger over the users, successful_transactions and failed_transactions tables.

    Each public operation runs in its own session so a failed credit never
    leaves a dirty session behind for the failure audit write.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize ledger with a session factory."""
        self.session_factory = session_factory

    async def find_successful(self, purchase_token: str) -> SuccessfulTransactionData | None:
        """
        Look up the successful transaction that consumed a token.

        Raises:
            CreditingFailedError: If the lookup itself fails
        """
        try:
            async with self.session_factory() as session:
                row = await self._find_successful_row(session, purchase_token)
                return _to_successful_data(row) if row is not None else None
        except SQLAlchemyError as exc:
            logger.error("purchase_token_lookup_failed", error=str(exc))
            raise CreditingFailedError(f"Could not check purchase token: {exc}") from exc

    async def apply_credit(
        self,
        user_id: UUID,
        request: PurchaseRequest,
        product: CreditProduct,
    ) -> CreditResult:
        """
        Credit a user and record the successful transaction.

        Balance update and transaction insert share one database transaction:
        either both are committed or neither is.

        Raises:
            DuplicatePurchaseError: Token was consumed by a concurrent request
            CreditingFailedError: User missing or storage failure
        """
        async with self.session_factory() as session:
            try:
                user = await self._lock_user_for_update(session, user_id)
                if user is None:
                    raise CreditingFailedError(f"User {user_id} not found")

                balance_before = user.credit_balance
                balance_after = balance_before + product.credits
                user.credit_balance = balance_after

                transaction = SuccessfulTransaction(
                    user_id=user_id,
                    purchase_token=request.purchase_token,
                    product_id=product.product_id,
                    credit_amount=product.credits,
                    platform=request.platform,
                    created_at=utc_now(),
                )
                session.add(transaction)
                await session.flush()
                await session.commit()

            except CreditingFailedError:
                await session.rollback()
                raise

            except IntegrityError as exc:
                await session.rollback()
                logger.warning(
                    "successful_transaction_integrity_error",
                    user_id=str(user_id),
                    error=str(exc.orig),
                )
                if await self._token_consumed(session, request.purchase_token):
                    raise DuplicatePurchaseError(request.purchase_token) from exc
                raise CreditingFailedError(f"Integrity error: {exc.orig}") from exc

            except SQLAlchemyError as exc:
                await session.rollback()
                logger.error("apply_credit_failed", user_id=str(user_id), error=str(exc))
                raise CreditingFailedError(str(exc)) from exc

        logger.info(
            "credits_applied",
            user_id=str(user_id),
            product_id=product.product_id,
            credits=product.credits,
            balance_before=balance_before,
            balance_after=balance_after,
        )

        return CreditResult(
            transaction=_to_successful_data(transaction),
            balance_before=balance_before,
            balance_after=balance_after,
        )

    async def record_failure(
        self,
        user_id: UUID | None,
        purchase_token: str | None,
        error_kind: PurchaseFailureKind | None,
        error_message: str,
    ) -> FailedTransactionData | None:
        """
        Append a failed-transaction audit record.

        Never raises: a failed audit write is logged and counted, and the
        caller's original error stands.

        Returns:
            The stored record, or None if it could not be written
        """
        try:
            async with self.session_factory() as session:
                record = FailedTransaction(
                    user_id=user_id,
                    purchase_token=purchase_token,
                    error_kind=error_kind,
                    error_message=error_message,
                    created_at=utc_now(),
                )
                session.add(record)
                await session.flush()
                await session.commit()
                return _to_failed_data(record)
        except Exception:
            logger.exception(
                "failed_transaction_write_failed",
                user_id=str(user_id) if user_id else None,
                error_kind=error_kind.value if error_kind else None,
            )
            metrics.record_failed_transaction_write()
            return None

    async def list_failures(self, purchase_token: str) -> list[FailedTransactionData]:
        """All failure records for a token, oldest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(FailedTransaction)
                .where(FailedTransaction.purchase_token == purchase_token)
                .order_by(FailedTransaction.id)
            )
            return [_to_failed_data(row) for row in result.scalars().all()]

    async def _find_successful_row(
        self, session: AsyncSession, purchase_token: str
    ) -> SuccessfulTransaction | None:
        stmt = select(SuccessfulTransaction).where(
            SuccessfulTransaction.purchase_token == purchase_token
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def _lock_user_for_update(self, session: AsyncSession, user_id: UUID) -> User | None:
        """SELECT ... FOR UPDATE on the user row (ignored by SQLite)."""
        stmt = select(User).where(User.id == user_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def _token_consumed(self, session: AsyncSession, purchase_token: str) -> bool:
        try:
            return await self._find_successful_row(session, purchase_token) is not None
        except SQLAlchemyError as exc:
            raise CreditingFailedError(f"Could not re-check purchase token: {exc}") from exc
