"""create users, refresh_tokens, mfa_settings

Revision ID: 5a1f0c2e9b7d
Revises:
Create Date: 2026-10-18 10:12:41.204518

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5a1f0c2e9b7d'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("token", sa.String(100), nullable=True),
        sa.Column("expired_at", sa.BigInteger(), nullable=True),
        sa.Column("birthday", sa.String(10), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("gender", sa.SmallInteger(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("token", name="uq_users_token"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "refresh_tokens",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("refresh_token", sa.String(60), nullable=False),
        sa.Column("ip_address", sa.String(45), nullable=False),
        sa.Column("used_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expired_at", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("refresh_token", name="uq_refresh_tokens_refresh_token"),
    )
    op.create_index("ix_refresh_tokens_user_id", "refresh_tokens", ["user_id"])

    op.create_table(
        "mfa_settings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("mfa_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("totp_secret", sa.String(255), nullable=True),
        sa.Column("backup_codes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", name="uq_mfa_settings_user_id"),
    )


def downgrade() -> None:
    op.drop_table("mfa_settings")
    op.drop_index("ix_refresh_tokens_user_id", table_name="refresh_tokens")
    op.drop_table("refresh_tokens")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
