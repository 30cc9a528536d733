"""Balance store: account lookup, provisioning and balance mutation.

Balance changes are single conditional UPDATE statements evaluated by the
database, so a debit that would go negative matches no row and is rejected
without reading a possibly stale value first.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pinode.db.models import User
from pinode.errors import InsufficientBalance, NotFound, ValidationFailed
from pinode.ledger.types import balance_column
from pinode.referrals.codes import generate_unique_referral_code, normalize_referral_code

logger = logging.getLogger(__name__)


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Load a user, overwriting any cached copy in the session."""
    result = await db.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def require_user(db: AsyncSession, user_id: int) -> User:
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise NotFound(f"User {user_id} not found")
    return user


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def get_user_by_telegram_id(db: AsyncSession, telegram_id: int | str) -> User | None:
    result = await db.execute(
        select(User)
        .where(User.telegram_id == str(telegram_id))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_user_by_referral_code(db: AsyncSession, code: str) -> User | None:
    result = await db.execute(select(User).where(User.referral_code == normalize_referral_code(code)))
    return result.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    *,
    email: str | None = None,
    password_hash: str | None = None,
    username: str | None = None,
    telegram_id: int | str | None = None,
    telegram_username: str | None = None,
    is_admin: bool = False,
) -> User:
    """Create an account with zero balances and a fresh referral code. Does not commit."""
    if email is not None:
        email = email.strip().lower()
        if await get_user_by_email(db, email):
            raise ValidationFailed("An account with this email already exists")

    user = User(
        email=email,
        password_hash=password_hash,
        username=username,
        telegram_id=str(telegram_id) if telegram_id is not None else None,
        telegram_username=telegram_username,
        mined_balance=Decimal("0"),
        network_balance=Decimal("0"),
        referral_code=await generate_unique_referral_code(db),
        is_admin=is_admin,
        created_at=datetime.now(timezone.utc),
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise ValidationFailed("Account already exists") from e

    logger.info("User created: id=%d email=%s telegram=%s", user.id, email, user.telegram_id)
    return user


async def link_telegram(
    db: AsyncSession,
    user: User,
    telegram_id: int | str,
    telegram_username: str | None = None,
) -> User:
    """Attach a Telegram chat identity to ``user`` (one-to-one). Does not commit."""
    user.telegram_id = str(telegram_id)
    user.telegram_username = telegram_username
    await db.flush()
    return user


async def credit_balance(db: AsyncSession, user_id: int, currency: str, amount: Decimal) -> None:
    """Add ``amount`` to the balance holding ``currency``. Does not commit."""
    column = balance_column(currency)
    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values({column: getattr(User, column) + amount})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise NotFound(f"User {user_id} not found")


async def debit_balance(db: AsyncSession, user_id: int, currency: str, amount: Decimal) -> None:
    """Subtract ``amount`` only if the balance covers it at statement time. Does not commit."""
    column = balance_column(currency)
    col = getattr(User, column)
    result = await db.execute(
        update(User)
        .where(User.id == user_id, col >= amount)
        .values({column: col - amount})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return

    user = await require_user(db, user_id)
    current = getattr(user, column)
    raise InsufficientBalance(
        f"Insufficient balance: {current} {currency.upper()} available, {amount} required"
    )


def balance_of(user: User, currency: str) -> Decimal:
    return Decimal(getattr(user, balance_column(currency)))
