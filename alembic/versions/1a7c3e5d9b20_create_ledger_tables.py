"""create ledger tables

Revision ID: 1a7c3e5d9b20
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "1a7c3e5d9b20"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "stocks",
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("price", sa.Numeric(14, 2), nullable=False),
        sa.PrimaryKeyConstraint("code"),
    )

    op.create_table(
        "classrooms",
        sa.Column("class_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("activity_start", sa.Date(), nullable=False),
        sa.Column("activity_end", sa.Date(), nullable=False),
        sa.Column("seed_money", sa.Numeric(14, 2), nullable=False),
        sa.Column("allowed_stock_codes", sa.JSON(), nullable=False),
        sa.Column("commission_enabled", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("commission_rate", sa.Numeric(6, 3), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("class_id"),
    )

    op.create_table(
        "student_accounts",
        sa.Column("student_id", sa.String(), nullable=False),
        sa.Column("class_id", sa.String(), nullable=False),
        sa.Column("nickname", sa.String(), nullable=False),
        sa.Column("cash", sa.Numeric(16, 2), nullable=False),
        sa.Column("enroll_seq", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(
            ["class_id"],
            ["classrooms.class_id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("student_id"),
        sa.UniqueConstraint("class_id", "nickname", name="uq_student_account_nickname"),
    )
    op.create_index(
        "ix_student_account_class_id",
        "student_accounts",
        ["class_id"],
    )

    op.create_table(
        "student_holdings",
        sa.Column("holding_id", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.String(), nullable=False),
        sa.Column("stock_code", sa.String(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("average_cost", sa.Numeric(20, 6), nullable=False),
        sa.ForeignKeyConstraint(
            ["student_id"],
            ["student_accounts.student_id"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("holding_id"),
        sa.UniqueConstraint("student_id", "stock_code", name="uq_student_holding_stock"),
    )
    op.create_index(
        "ix_student_holding_student_id",
        "student_holdings",
        ["student_id"],
    )

    op.create_table(
        "ledger_transactions",
        sa.Column("seq", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("transaction_id", sa.String(), nullable=False),
        sa.Column("student_id", sa.String(), nullable=False),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("stock_code", sa.String(), nullable=False),
        sa.Column("stock_name", sa.String(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(14, 2), nullable=False),
        sa.Column("commission", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("executed_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("seq"),
        sa.UniqueConstraint("transaction_id"),
    )
    op.create_index(
        "ix_ledger_transaction_student_id",
        "ledger_transactions",
        ["student_id"],
    )

    op.create_table(
        "app_settings",
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("value", sa.String(), nullable=True),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("key"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("app_settings")
    op.drop_index("ix_ledger_transaction_student_id", table_name="ledger_transactions")
    op.drop_table("ledger_transactions")
    op.drop_index("ix_student_holding_student_id", table_name="student_holdings")
    op.drop_table("student_holdings")
    op.drop_index("ix_student_account_class_id", table_name="student_accounts")
    op.drop_table("student_accounts")
    op.drop_table("classrooms")
    op.drop_table("stocks")
