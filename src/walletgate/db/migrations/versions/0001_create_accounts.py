"""create accounts table

Unique indexes on email and wallet_address back the directory's
uniqueness guarantee (and the wallet sign-in race resolution).

Revision ID: 0001_create_accounts
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "0001_create_accounts"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("wallet_address", sa.String(length=42), nullable=True),
        sa.Column("wallet_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("email", name="accounts_email_key"),
        sa.UniqueConstraint("wallet_address", name="accounts_wallet_address_key"),
    )
    op.create_index("ix_accounts_role", "accounts", ["role"])


def downgrade() -> None:
    op.drop_index("ix_accounts_role", table_name="accounts")
    op.drop_table("accounts")
