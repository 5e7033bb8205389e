"""create users and holdings tables

Revision ID: 5c1e2a9d7b40
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "5c1e2a9d7b40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("password_hash", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_users_id", "users", ["id"], unique=False)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "holdings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=True),
        sa.Column("ticker", sa.String(length=32), nullable=False),
        sa.Column("asset_type", sa.String(length=32), nullable=False, server_default=""),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("avg_cost", sa.Float(), nullable=False),
        sa.Column("current_price", sa.Float(), nullable=False),
        sa.Column("previous_close", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "ticker", name="uq_holdings_user_ticker"),
    )
    op.create_index("ix_holdings_id", "holdings", ["id"], unique=False)
    op.create_index("ix_holdings_user_id", "holdings", ["user_id"], unique=False)
    op.create_index("ix_holdings_ticker", "holdings", ["ticker"], unique=False)
    op.create_index(
        "uq_holdings_ticker_no_owner",
        "holdings",
        ["ticker"],
        unique=True,
        sqlite_where=sa.text("user_id IS NULL"),
        postgresql_where=sa.text("user_id IS NULL"),
    )


def downgrade() -> None:
    op.drop_index("uq_holdings_ticker_no_owner", table_name="holdings")
    op.drop_index("ix_holdings_ticker", table_name="holdings")
    op.drop_index("ix_holdings_user_id", table_name="holdings")
    op.drop_index("ix_holdings_id", table_name="holdings")
    op.drop_table("holdings")

    op.drop_index("ix_users_username", table_name="users")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")
