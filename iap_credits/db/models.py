"""
Database Models - SQLAlchemy ORM models with strict typing.

NO DICTIONARIES - All columns use Mapped[] type annotations.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from iap_credits.models.api import Platform, PurchaseFailureKind

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntegerPK = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class User(Base):
    """
    ORM model for users table.

    The table is owned by the user-management service. Only the credit
    balance is written from here.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    credit_balance: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("credit_balance >= 0", name="ck_users_credit_balance_non_negative"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<User(id={self.id}, credit_balance={self.credit_balance})>"


class SuccessfulTransaction(Base):
    """
    ORM model for successful_transactions table.

    One row per consumed purchase token. The unique index on purchase_token
    is what stops a token from being credited twice.
    """

    __tablename__ = "successful_transactions"

    # Primary Key
    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)

    # Foreign Key to User
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    # Purchase fields
    purchase_token: Mapped[str] = mapped_column(Text, nullable=False)
    product_id: Mapped[str] = mapped_column(String(255), nullable=False)
    credit_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    platform: Mapped[Platform] = mapped_column(
        SQLEnum(
            Platform,
            name="purchase_platform",
            native_enum=False,
            length=16,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )

    # Audit timestamp
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        CheckConstraint("credit_amount > 0", name="ck_successful_transactions_credit_positive"),
        Index(
            "idx_successful_transactions_purchase_token",
            "purchase_token",
            unique=True,
        ),
        Index("idx_successful_transactions_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<SuccessfulTransaction(id={self.id}, user_id={self.user_id}, "
            f"product_id={self.product_id}, credits={self.credit_amount})>"
        )


class FailedTransaction(Base):
    """
    ORM model for failed_transactions table.

    Append-only audit trail. A user retrying the same token produces one row
    per attempt.
    """

    __tablename__ = "failed_transactions"

    # Primary Key
    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)

    # Not a foreign key: failures are kept even if the user is later removed
    user_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)
    purchase_token: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Failure details
    error_kind: Mapped[PurchaseFailureKind | None] = mapped_column(
        SQLEnum(
            PurchaseFailureKind,
            name="purchase_failure_kind",
            native_enum=False,
            length=32,
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=True,
    )
    error_message: Mapped[str] = mapped_column(Text, nullable=False)

    # Audit timestamp
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        Index("idx_failed_transactions_purchase_token", "purchase_token"),
        Index("idx_failed_transactions_user_id", "user_id"),
        Index("idx_failed_transactions_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<FailedTransaction(id={self.id}, user_id={self.user_id}, "
            f"error_kind={self.error_kind})>"
        )
