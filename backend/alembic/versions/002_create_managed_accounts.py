"""Create managed_accounts table.

Revision ID: 002
Revises: 001
Create Date: 2024-03-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    if "managed_accounts" in sa.inspect(conn).get_table_names():
        return

    op.create_table(
        "managed_accounts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("managed_google_id", sa.String(255), nullable=False),
        sa.Column("managed_email", sa.String(255), nullable=False),
        sa.Column("access_token", sa.Text(), nullable=True),
        sa.Column("refresh_token", sa.Text(), nullable=True),
        sa.Column("token_expires_at", sa.DateTime(), nullable=True),
        sa.Column("ads_account_id", sa.String(64), nullable=True),
        sa.Column("descriptive_name", sa.String(512), nullable=True),
        sa.Column("currency_code", sa.String(8), nullable=True),
        sa.Column("time_zone", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE", onupdate="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "managed_google_id", name="uq_managed_account_per_user"),
    )
    op.create_index("ix_managed_accounts_user_id", "managed_accounts", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_managed_accounts_user_id", table_name="managed_accounts")
    op.drop_table("managed_accounts")
