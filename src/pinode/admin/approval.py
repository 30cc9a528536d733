"""Admin approval workflow for pending deposits and withdrawals.

This is the only path that settles admin-gated transactions. Each approval
is one unit of work: a compare-and-set on the transaction status plus a
conditional balance update, committed together or rolled back together.
A second admin acting on the same transaction hits the status check and
gets TransactionNotPending; a withdrawal the balance no longer covers gets
InsufficientBalance and stays pending.

Bulk operations walk the pending set one transaction at a time, commit
each independently and report per-item failures instead of stopping.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pinode.db.models import Transaction
from pinode.errors import LedgerError, TransactionNotPending, ValidationFailed
from pinode.ledger.service import finalize_transaction, get_transaction, list_pending
from pinode.ledger.types import (
    ADMIN_GATED_TYPES,
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    TYPE_DEPOSIT,
    TYPE_WITHDRAW,
)
from pinode.notifications import templates
from pinode.notifications.dispatcher import NotificationDispatcher
from pinode.users.service import credit_balance, debit_balance, require_user

logger = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 20
MAX_ERROR_LENGTH = 200


@dataclass
class BulkResult:
    succeeded: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    def record_failure(self, tx_type: str, tx_id: int, reason: str) -> None:
        self.failed += 1
        if len(self.errors) < MAX_REPORTED_ERRORS:
            self.errors.append(f"{tx_type} #{tx_id}: {reason}"[:MAX_ERROR_LENGTH])


def _check_matches(tx: Transaction, tx_type: str, user_id: int, amount: Decimal, currency: str) -> None:
    if tx.status != STATUS_PENDING:
        raise TransactionNotPending(f"Transaction {tx.id} is already {tx.status}")
    if tx.type != tx_type:
        raise ValidationFailed(f"Transaction {tx.id} is a {tx.type}, not a {tx_type}")
    if tx.user_id != user_id or Decimal(tx.amount) != Decimal(amount) or tx.currency != currency.upper():
        raise ValidationFailed(f"Transaction {tx.id} details do not match the request")


async def approve_deposit(
    db: AsyncSession,
    tx_id: int,
    user_id: int,
    amount: Decimal,
    currency: str,
    dispatcher: NotificationDispatcher | None = None,
) -> None:
    """Credit a pending deposit and mark it completed. Commits."""
    tx = await get_transaction(db, tx_id)
    _check_matches(tx, TYPE_DEPOSIT, user_id, amount, currency)
    user = await require_user(db, user_id)
    telegram_id = user.telegram_id

    try:
        await finalize_transaction(db, tx_id, STATUS_COMPLETED)
        await credit_balance(db, user_id, currency, amount)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Deposit approved: tx=%d user=%d amount=%s %s", tx_id, user_id, amount, currency)
    if dispatcher is not None:
        dispatcher.dispatch(telegram_id, templates.deposit_approved(amount, currency.upper()))


async def approve_withdraw(
    db: AsyncSession,
    tx_id: int,
    user_id: int,
    amount: Decimal,
    currency: str,
    dispatcher: NotificationDispatcher | None = None,
) -> None:
    """Debit a pending withdrawal and mark it completed.

    Raises InsufficientBalance, leaving the transaction pending and the
    balance untouched, when the balance no longer covers the amount. Commits.
    """
    tx = await get_transaction(db, tx_id)
    _check_matches(tx, TYPE_WITHDRAW, user_id, amount, currency)
    address = tx.address
    user = await require_user(db, user_id)
    telegram_id = user.telegram_id

    try:
        await finalize_transaction(db, tx_id, STATUS_COMPLETED)
        await debit_balance(db, user_id, currency, amount)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Withdrawal approved: tx=%d user=%d amount=%s %s", tx_id, user_id, amount, currency)
    if dispatcher is not None:
        dispatcher.dispatch(telegram_id, templates.withdrawal_approved(amount, currency.upper(), address))


async def approve_transaction(
    db: AsyncSession,
    tx_id: int,
    dispatcher: NotificationDispatcher | None = None,
) -> Transaction:
    """Approve whatever pending deposit or withdrawal ``tx_id`` is, using its stored details."""
    tx = await get_transaction(db, tx_id)
    if tx.status != STATUS_PENDING:
        raise TransactionNotPending(f"Transaction {tx_id} is already {tx.status}")
    if tx.type not in ADMIN_GATED_TYPES:
        raise ValidationFailed(f"{tx.type} transactions do not need approval")

    approve = approve_deposit if tx.type == TYPE_DEPOSIT else approve_withdraw
    await approve(db, tx.id, tx.user_id, Decimal(tx.amount), tx.currency, dispatcher)
    return await get_transaction(db, tx_id)


async def reject_transaction(
    db: AsyncSession,
    tx_id: int,
    dispatcher: NotificationDispatcher | None = None,
) -> Transaction:
    """Mark a pending transaction failed. No balance effect. Commits."""
    tx = await get_transaction(db, tx_id)
    tx_type, user_id, amount, currency = tx.type, tx.user_id, Decimal(tx.amount), tx.currency

    try:
        await finalize_transaction(db, tx_id, STATUS_FAILED)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Transaction rejected: tx=%d type=%s user=%d", tx_id, tx_type, user_id)
    if dispatcher is not None and tx_type == TYPE_WITHDRAW:
        user = await require_user(db, user_id)
        dispatcher.dispatch(user.telegram_id, templates.withdrawal_rejected(amount, currency))
    return await get_transaction(db, tx_id)


async def _pending_snapshot(db: AsyncSession) -> list[tuple[int, str, int, Decimal, str]]:
    # Plain tuples: the loop rolls back on failures, which expires ORM instances.
    pending = await list_pending(db)
    return [
        (tx.id, tx.type, tx.user_id, Decimal(tx.amount), tx.currency)
        for tx in pending
        if tx.type in ADMIN_GATED_TYPES
    ]


async def approve_all(db: AsyncSession, dispatcher: NotificationDispatcher | None = None) -> BulkResult:
    """Approve every pending deposit and withdrawal, sequentially."""
    report = BulkResult()
    for tx_id, tx_type, user_id, amount, currency in await _pending_snapshot(db):
        approve = approve_deposit if tx_type == TYPE_DEPOSIT else approve_withdraw
        try:
            await approve(db, tx_id, user_id, amount, currency, dispatcher)
        except LedgerError as e:
            report.record_failure(tx_type, tx_id, e.message)
        except SQLAlchemyError:
            logger.exception("Store failure approving transaction %d", tx_id)
            report.record_failure(tx_type, tx_id, "Temporary failure, please try again")
        else:
            report.succeeded += 1

    logger.info("Bulk approve: %d succeeded, %d failed", report.succeeded, report.failed)
    return report


async def reject_all(db: AsyncSession, dispatcher: NotificationDispatcher | None = None) -> BulkResult:
    """Reject every pending deposit and withdrawal, sequentially."""
    report = BulkResult()
    for tx_id, tx_type, _user_id, _amount, _currency in await _pending_snapshot(db):
        try:
            await reject_transaction(db, tx_id, dispatcher)
        except LedgerError as e:
            report.record_failure(tx_type, tx_id, e.message)
        except SQLAlchemyError:
            logger.exception("Store failure rejecting transaction %d", tx_id)
            report.record_failure(tx_type, tx_id, "Temporary failure, please try again")
        else:
            report.succeeded += 1

    logger.info("Bulk reject: %d succeeded, %d failed", report.succeeded, report.failed)
    return report
