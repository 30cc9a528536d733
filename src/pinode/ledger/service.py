"""Transaction ledger: a pure record API.

The ledger writes and reads transaction rows and owns the single legal
status transition (pending -> completed|failed). It never touches balances;
callers that mutate balances do so in the same session before committing.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pinode.db.models import Transaction
from pinode.errors import NotFound, TransactionNotPending
from pinode.ledger.schemas import LedgerEntry, TransactionResponse
from pinode.ledger.types import STATUS_COMPLETED, STATUS_FAILED, STATUS_PENDING

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 10
DEFAULT_LIST_LIMIT = 100
MAX_LIST_LIMIT = 1000


async def create_transaction(db: AsyncSession, user_id: int, entry: LedgerEntry) -> Transaction:
    """Persist ``entry`` for ``user_id`` in the status the entry carries. Returns the row with its id."""
    tx = Transaction(
        user_id=user_id,
        type=entry.type,
        amount=entry.amount,
        amount_received=getattr(entry, "amount_received", None),
        currency=entry.currency,
        status=entry.status,
        description=entry.description,
        network=getattr(entry, "network", None),
        address=getattr(entry, "address", None),
        idempotency_key=getattr(entry, "idempotency_key", None),
        created_at=datetime.now(timezone.utc),
    )
    db.add(tx)
    await db.flush()
    logger.info(
        "Ledger entry created: id=%d user=%d type=%s amount=%s %s status=%s",
        tx.id, user_id, tx.type, tx.amount, tx.currency, tx.status,
    )
    return tx


async def get_transaction(db: AsyncSession, tx_id: int) -> Transaction:
    """Load a transaction fresh from the store."""
    result = await db.execute(
        select(Transaction)
        .where(Transaction.id == tx_id)
        .execution_options(populate_existing=True)
    )
    tx = result.scalar_one_or_none()
    if tx is None:
        raise NotFound(f"Transaction {tx_id} not found")
    return tx


async def find_by_idempotency_key(db: AsyncSession, key: str) -> Transaction | None:
    result = await db.execute(select(Transaction).where(Transaction.idempotency_key == key))
    return result.scalar_one_or_none()


def _newest_first(stmt):  # noqa: ANN001, ANN202
    return stmt.order_by(Transaction.created_at.desc(), Transaction.id.desc())


async def list_pending(db: AsyncSession, limit: int | None = None) -> Sequence[Transaction]:
    """All pending transactions, newest first."""
    stmt = _newest_first(select(Transaction).where(Transaction.status == STATUS_PENDING))
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return result.scalars().all()


async def list_recent(db: AsyncSession, user_id: int, limit: int = DEFAULT_RECENT_LIMIT) -> Sequence[Transaction]:
    """A user's latest transactions, newest first."""
    result = await db.execute(
        _newest_first(select(Transaction).where(Transaction.user_id == user_id)).limit(_clamp_limit(limit))
    )
    return result.scalars().all()


async def list_all(db: AsyncSession, limit: int = DEFAULT_LIST_LIMIT) -> Sequence[Transaction]:
    """Latest transactions across all users, newest first."""
    result = await db.execute(_newest_first(select(Transaction)).limit(_clamp_limit(limit)))
    return result.scalars().all()


async def count_pending(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count()).select_from(Transaction).where(Transaction.status == STATUS_PENDING)
    )
    return result.scalar_one()


def _clamp_limit(limit: int) -> int:
    return max(1, min(limit, MAX_LIST_LIMIT))


async def finalize_transaction(db: AsyncSession, tx_id: int, status: str) -> None:
    """Compare-and-set ``pending -> status``.

    Raises TransactionNotPending when another actor already finalized the row,
    NotFound when the row does not exist. Does not commit.
    """
    if status not in (STATUS_COMPLETED, STATUS_FAILED):
        msg = f"Invalid terminal status: {status}"
        raise ValueError(msg)

    result = await db.execute(
        update(Transaction)
        .where(Transaction.id == tx_id, Transaction.status == STATUS_PENDING)
        .values(status=status, processed_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return

    current = await get_transaction(db, tx_id)
    raise TransactionNotPending(f"Transaction {tx_id} is already {current.status}")


def to_response(tx: Transaction) -> TransactionResponse:
    """Build a TransactionResponse from a Transaction model."""
    return TransactionResponse(
        id=tx.id,
        user_id=tx.user_id,
        type=tx.type,
        amount=float(tx.amount),
        amount_received=float(tx.amount_received) if tx.amount_received is not None else None,
        currency=tx.currency,
        status=tx.status,
        description=tx.description,
        network=tx.network,
        address=tx.address,
        created_at=tx.created_at,
        processed_at=tx.processed_at,
    )
