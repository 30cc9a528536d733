"""Self-service wallet operations: exchange, withdrawal and deposit requests.

Exchange settles immediately. Withdrawal and deposit requests only write a
pending ledger entry; balances move when an admin approves them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pinode.admin.settings_service import get_min_withdraw
from pinode.config import get_settings
from pinode.db.models import Transaction
from pinode.errors import DuplicateRequest, InsufficientBalance, ValidationFailed
from pinode.ledger.schemas import DepositEntry, ExchangeEntry, WithdrawEntry
from pinode.ledger.service import create_transaction
from pinode.ledger.types import (
    CONVERSION_RATE,
    CURRENCY_PI,
    CURRENCY_PINODE,
    STATUS_PENDING,
    TYPE_WITHDRAW,
    ZERO,
)
from pinode.notifications import templates
from pinode.notifications.dispatcher import NotificationDispatcher
from pinode.users.service import balance_of, credit_balance, debit_balance, require_user

logger = logging.getLogger(__name__)

MIN_EXCHANGE = Decimal("20")
MIN_ADDRESS_LENGTH = 10


@dataclass(frozen=True)
class ExchangeResult:
    transaction_id: int
    pinode_spent: Decimal
    pi_received: Decimal
    mined_balance: Decimal
    network_balance: Decimal


def pi_for(pinode: Decimal) -> Decimal:
    """Network tokens bought by ``pinode`` mined tokens."""
    return Decimal(pinode) / CONVERSION_RATE


# ---------------------------------------------------------------------------
# Exchange
# ---------------------------------------------------------------------------


async def exchange(
    db: AsyncSession,
    user_id: int,
    amount: Decimal,
    dispatcher: NotificationDispatcher | None = None,
) -> ExchangeResult:
    """Convert ``amount`` PiNode into PI at the fixed rate. Commits on success."""
    if amount <= ZERO:
        raise ValidationFailed("Please enter a valid PiNode amount.")
    if amount != amount.to_integral_value():
        raise ValidationFailed("PiNode amount must be a whole number.")
    if amount < MIN_EXCHANGE:
        raise ValidationFailed("Minimum exchange is 20 PiNode (≈ 1 PI Network).")

    user = await require_user(db, user_id)
    if amount > balance_of(user, CURRENCY_PINODE):
        raise InsufficientBalance("Insufficient PiNode balance.")

    pi_received = pi_for(amount)
    try:
        await debit_balance(db, user_id, CURRENCY_PINODE, amount)
        await credit_balance(db, user_id, CURRENCY_PI, pi_received)
        tx = await create_transaction(
            db,
            user_id,
            ExchangeEntry(
                amount=amount,
                amount_received=pi_received,
                description=f"Exchanged {amount} PiNode for {pi_received:.4f} PI Network",
            ),
        )
        tx_id = tx.id
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    user = await require_user(db, user_id)
    logger.info("Exchange: user=%d pinode=%s pi=%s tx=%d", user_id, amount, pi_received, tx_id)
    if dispatcher is not None:
        dispatcher.dispatch(user.telegram_id, templates.exchange_completed(pi_received))
    return ExchangeResult(
        transaction_id=tx_id,
        pinode_spent=amount,
        pi_received=pi_received,
        mined_balance=user.mined_balance,
        network_balance=user.network_balance,
    )


# ---------------------------------------------------------------------------
# Withdrawal request
# ---------------------------------------------------------------------------


async def _has_recent_duplicate(db: AsyncSession, user_id: int, amount: Decimal) -> bool:
    window = get_settings().withdraw_duplicate_window_seconds
    since = datetime.now(timezone.utc) - timedelta(seconds=window)
    result = await db.execute(
        select(Transaction.id)
        .where(
            Transaction.user_id == user_id,
            Transaction.type == TYPE_WITHDRAW,
            Transaction.status == STATUS_PENDING,
            Transaction.amount == amount,
            Transaction.created_at >= since,
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def request_withdrawal(
    db: AsyncSession,
    user_id: int,
    amount: Decimal,
    address: str,
    network: str | None = None,
) -> Transaction:
    """Record a pending PI withdrawal. The balance is not touched until approval. Commits."""
    if amount <= ZERO:
        raise ValidationFailed("Please enter a valid amount")

    minimum = await get_min_withdraw(db)
    if amount < minimum:
        raise ValidationFailed(f"Minimum withdrawal is {minimum.normalize():f} PI")

    address = (address or "").strip()
    if len(address) < MIN_ADDRESS_LENGTH:
        raise ValidationFailed("Please enter a valid PI Network address.")

    user = await require_user(db, user_id)
    if amount > balance_of(user, CURRENCY_PI):
        raise InsufficientBalance("Insufficient balance. Please refresh and try again.")

    if await _has_recent_duplicate(db, user_id, amount):
        raise DuplicateRequest("A similar withdrawal request is already pending. Please wait for approval.")

    try:
        tx = await create_transaction(
            db,
            user_id,
            WithdrawEntry(
                amount=amount,
                currency=CURRENCY_PI,
                address=address,
                network=network,
                description=f"Withdraw {amount} PI to {address} (PI Network)",
            ),
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Withdrawal requested: user=%d amount=%s tx=%d", user_id, amount, tx.id)
    return tx


# ---------------------------------------------------------------------------
# Deposit request
# ---------------------------------------------------------------------------


async def request_deposit(
    db: AsyncSession,
    user_id: int,
    amount: Decimal,
    currency: str = CURRENCY_PI,
    network: str | None = None,
    reference: str | None = None,
) -> Transaction:
    """Record an operator-asserted deposit awaiting manual verification. Commits."""
    if amount <= ZERO:
        raise ValidationFailed("Please enter a valid amount")
    await require_user(db, user_id)

    description = f"Deposit {amount} {currency}"
    if network:
        description += f" via {network}"
    if reference:
        description += f" (ref {reference})"

    try:
        tx = await create_transaction(
            db,
            user_id,
            DepositEntry(amount=amount, currency=currency, network=network, description=description),
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Deposit requested: user=%d amount=%s %s tx=%d", user_id, amount, currency, tx.id)
    return tx
