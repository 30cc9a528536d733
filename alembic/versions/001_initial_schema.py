"""Initial schema: users, transactions, referrals, missions, platform settings.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

AMOUNT = sa.Numeric(20, 8)


def upgrade() -> None:
    """Create all tables."""
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("username", sa.String(64), nullable=True),
        sa.Column("password_hash", sa.String(256), nullable=True),
        sa.Column("telegram_id", sa.String(32), nullable=True),
        sa.Column("telegram_username", sa.String(64), nullable=True),
        sa.Column("mined_balance", AMOUNT, server_default="0", nullable=False),
        sa.Column("network_balance", AMOUNT, server_default="0", nullable=False),
        sa.Column("referral_code", sa.String(16), nullable=False),
        sa.Column("is_admin", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True, postgresql_where=sa.text("email IS NOT NULL"))
    op.create_index(
        "ix_users_telegram_id", "users", ["telegram_id"], unique=True, postgresql_where=sa.text("telegram_id IS NOT NULL")
    )
    op.create_index("ix_users_referral_code", "users", ["referral_code"], unique=True)
    op.execute("ALTER TABLE users ADD CONSTRAINT mined_balance_non_negative CHECK (mined_balance >= 0)")
    op.execute("ALTER TABLE users ADD CONSTRAINT network_balance_non_negative CHECK (network_balance >= 0)")

    # --- transactions ---
    op.create_table(
        "transactions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("amount", AMOUNT, nullable=False),
        sa.Column("amount_received", AMOUNT, nullable=True),
        sa.Column("currency", sa.String(16), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("network", sa.String(32), nullable=True),
        sa.Column("address", sa.String(256), nullable=True),
        sa.Column("idempotency_key", sa.String(256), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_transactions_user_created", "transactions", ["user_id", "created_at"])
    op.create_index("ix_transactions_status_created", "transactions", ["status", "created_at"])
    op.create_index(
        "ix_transactions_idempotency_key",
        "transactions",
        ["idempotency_key"],
        unique=True,
        postgresql_where=sa.text("idempotency_key IS NOT NULL"),
    )
    op.execute("ALTER TABLE transactions ADD CONSTRAINT amount_positive CHECK (amount > 0)")
    op.execute(
        "ALTER TABLE transactions ADD CONSTRAINT ck_transactions_type "
        "CHECK (type IN ('deposit', 'withdraw', 'exchange', 'claim', 'referral'))"
    )
    op.execute(
        "ALTER TABLE transactions ADD CONSTRAINT ck_transactions_status "
        "CHECK (status IN ('pending', 'completed', 'failed'))"
    )

    # --- referrals ---
    op.create_table(
        "referrals",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("referrer_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("referred_user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("referred_telegram_id", sa.String(32), nullable=True),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("bonus_earned", AMOUNT, server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("activated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("referrer_id", "referred_user_id", name="uq_referrals_referrer_user"),
        sa.UniqueConstraint("referrer_id", "referred_telegram_id", name="uq_referrals_referrer_telegram"),
    )
    op.create_index("ix_referrals_referrer_status", "referrals", ["referrer_id", "status"])
    op.execute(
        "ALTER TABLE referrals ADD CONSTRAINT ck_referrals_status CHECK (status IN ('pending', 'active'))"
    )

    # --- user_missions ---
    op.create_table(
        "user_missions",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("mission_id", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("reward", AMOUNT, nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "mission_id", name="uq_user_missions_user_mission"),
    )
    op.execute(
        "ALTER TABLE user_missions ADD CONSTRAINT ck_user_missions_status CHECK (status IN ('completed', 'claimed'))"
    )

    # --- platform_settings ---
    op.create_table(
        "platform_settings",
        sa.Column("key", sa.String(64), primary_key=True),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )
    op.execute("INSERT INTO platform_settings (key, value) VALUES ('min_withdraw', '100')")


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("platform_settings")
    op.drop_table("user_missions")
    op.drop_table("referrals")
    op.drop_table("transactions")
    op.drop_table("users")
