"""create purchase transaction tables

Revision ID: 2026_10_19_0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

Adds in-app purchase bookkeeping:
- users.credit_balance and users.updated_at (the users table is created if absent,
  missing columns are added if it already exists)
- successful_transactions: one row per consumed purchase token (unique)
- failed_transactions: append-only failure audit trail
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "2026_10_19_0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _create_users_table() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("credit_balance", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("credit_balance >= 0", name="ck_users_credit_balance_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )


def _add_missing_user_columns(bind: sa.engine.Connection) -> None:
    existing = {column["name"] for column in sa.inspect(bind).get_columns("users")}
    missing = [name for name in ("credit_balance", "updated_at") if name not in existing]
    if not missing:
        return

    # SQLite can only add a CHECK constraint or a CURRENT_TIMESTAMP default by copying the table
    recreate = "always" if bind.dialect.name == "sqlite" else "auto"
    with op.batch_alter_table("users", recreate=recreate) as batch_op:
        if "credit_balance" in missing:
            batch_op.add_column(
                sa.Column("credit_balance", sa.BigInteger(), nullable=False, server_default="0")
            )
            batch_op.create_check_constraint(
                "ck_users_credit_balance_non_negative", "credit_balance >= 0"
            )
        if "updated_at" in missing:
            batch_op.add_column(
                sa.Column(
                    "updated_at",
                    sa.DateTime(timezone=True),
                    nullable=False,
                    server_default=sa.func.now(),
                )
            )


def upgrade() -> None:
    # users belongs to the user service; create it only for standalone deployments
    bind = op.get_bind()
    if sa.inspect(bind).has_table("users"):
        _add_missing_user_columns(bind)
    else:
        _create_users_table()

    op.create_table(
        "successful_transactions",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("purchase_token", sa.Text(), nullable=False),
        sa.Column("product_id", sa.String(length=255), nullable=False),
        sa.Column("credit_amount", sa.Integer(), nullable=False),
        sa.Column("platform", sa.String(length=16), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint("credit_amount > 0", name="ck_successful_transactions_credit_positive"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )

    # Replay defense: a purchase token can be consumed exactly once
    op.create_index(
        "idx_successful_transactions_purchase_token",
        "successful_transactions",
        ["purchase_token"],
        unique=True,
    )
    op.create_index(
        "idx_successful_transactions_user_id", "successful_transactions", ["user_id"]
    )

    op.create_table(
        "failed_transactions",
        sa.Column("id", sa.BigInteger().with_variant(sa.Integer(), "sqlite"), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("purchase_token", sa.Text(), nullable=True),
        sa.Column("error_kind", sa.String(length=32), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index(
        "idx_failed_transactions_purchase_token", "failed_transactions", ["purchase_token"]
    )
    op.create_index("idx_failed_transactions_user_id", "failed_transactions", ["user_id"])
    op.create_index("idx_failed_transactions_created_at", "failed_transactions", ["created_at"])


def downgrade() -> None:
    op.drop_index("idx_failed_transactions_created_at", table_name="failed_transactions")
    op.drop_index("idx_failed_transactions_user_id", table_name="failed_transactions")
    op.drop_index("idx_failed_transactions_purchase_token", table_name="failed_transactions")
    op.drop_table("failed_transactions")

    op.drop_index("idx_successful_transactions_user_id", table_name="successful_transactions")
    op.drop_index(
        "idx_successful_transactions_purchase_token", table_name="successful_transactions"
    )
    op.drop_table("successful_transactions")
    # users is owned by the user service and is left in place
