"""ORM models for the balance store, ledger, referrals, missions and settings.

Column types stay portable (no JSONB/INET) so the same metadata backs both
PostgreSQL in production and SQLite in the test suite.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pinode.db.base import Base, BigIntPK

Amount = Numeric(20, 8)


# ---------------------------------------------------------------------------
# Users (balance store)
# ---------------------------------------------------------------------------


class User(Base):
    """A PiNode account. Balances change only through ledger operations."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("mined_balance >= 0", name="mined_balance_non_negative"),
        CheckConstraint("network_balance >= 0", name="network_balance_non_negative"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    email: Mapped[str | None] = mapped_column(String(320), unique=True, nullable=True)
    username: Mapped[str | None] = mapped_column(String(64), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(256), nullable=True)
    telegram_id: Mapped[str | None] = mapped_column(String(32), unique=True, nullable=True)
    telegram_username: Mapped[str | None] = mapped_column(String(64), nullable=True)
    mined_balance: Mapped[Decimal] = mapped_column(Amount, nullable=False, default=Decimal("0"))
    network_balance: Mapped[Decimal] = mapped_column(Amount, nullable=False, default=Decimal("0"))
    referral_code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    transactions: Mapped[list[Transaction]] = relationship("Transaction", back_populates="user")


# ---------------------------------------------------------------------------
# Transaction ledger
# ---------------------------------------------------------------------------


class Transaction(Base):
    """Monetary event tied to one user. Status moves pending -> completed|failed once."""

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="amount_positive"),
        Index("ix_transactions_user_created", "user_id", "created_at"),
        Index("ix_transactions_status_created", "status", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    amount_received: Mapped[Decimal | None] = mapped_column(Amount, nullable=True)
    currency: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    network: Mapped[str | None] = mapped_column(String(32), nullable=True)
    address: Mapped[str | None] = mapped_column(String(256), nullable=True)
    idempotency_key: Mapped[str | None] = mapped_column(String(256), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped[User] = relationship("User", back_populates="transactions")


# ---------------------------------------------------------------------------
# Referrals
# ---------------------------------------------------------------------------


class Referral(Base):
    """Referrer -> referred relationship and the bonus stamped on it."""

    __tablename__ = "referrals"
    __table_args__ = (
        UniqueConstraint("referrer_id", "referred_user_id", name="uq_referrals_referrer_user"),
        UniqueConstraint("referrer_id", "referred_telegram_id", name="uq_referrals_referrer_telegram"),
        Index("ix_referrals_referrer_status", "referrer_id", "status"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    referrer_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    referred_user_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    referred_telegram_id: Mapped[str | None] = mapped_column(String(32), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    bonus_earned: Mapped[Decimal] = mapped_column(Amount, nullable=False, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    activated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Missions
# ---------------------------------------------------------------------------


class UserMission(Base):
    """Per-user progress on a catalog mission: completed, then claimed at most once."""

    __tablename__ = "user_missions"
    __table_args__ = (UniqueConstraint("user_id", "mission_id", name="uq_user_missions_user_mission"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    mission_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    reward: Mapped[Decimal] = mapped_column(Amount, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


# ---------------------------------------------------------------------------
# Platform settings
# ---------------------------------------------------------------------------


class PlatformSetting(Base):
    """Key/value platform configuration editable by admins."""

    __tablename__ = "platform_settings"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
