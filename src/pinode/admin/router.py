"""Admin endpoints: transaction approval, platform settings, stats.

Every route requires an admin account.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pinode.admin.approval import BulkResult, approve_all, approve_transaction, reject_all, reject_transaction
from pinode.admin.schemas import (
    AdminStatsResponse,
    AdminTransactionListResponse,
    AdminTransactionResponse,
    BulkActionResponse,
    MinWithdrawSetting,
    MinWithdrawUpdate,
    ReferralActivationResponse,
)
from pinode.admin.settings_service import MIN_WITHDRAW_FLOOR, get_min_withdraw, set_min_withdraw
from pinode.admin.stats_service import get_admin_stats
from pinode.auth.dependencies import require_admin
from pinode.database import get_session
from pinode.db.models import Transaction, User
from pinode.ledger.schemas import TransactionResponse
from pinode.ledger.service import DEFAULT_LIST_LIMIT, list_all, list_pending, to_response
from pinode.notifications.dispatcher import NotificationDispatcher, get_dispatcher
from pinode.referrals.service import activate_referral

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


async def _with_users(db: AsyncSession, rows: Sequence[Transaction]) -> AdminTransactionListResponse:
    user_ids = {tx.user_id for tx in rows}
    users: dict[int, User] = {}
    if user_ids:
        result = await db.execute(select(User).where(User.id.in_(user_ids)))
        users = {u.id: u for u in result.scalars()}

    items = []
    for tx in rows:
        owner = users.get(tx.user_id)
        items.append(AdminTransactionResponse(
            **to_response(tx).model_dump(),
            user_email=owner.email if owner else None,
            user_telegram_username=owner.telegram_username if owner else None,
        ))
    return AdminTransactionListResponse(transactions=items, total=len(items))


def _bulk_response(verb: str, report: BulkResult) -> BulkActionResponse:
    message = f"Successfully {verb} {report.succeeded} transaction(s)."
    if report.failed:
        message += f" {report.failed} failed."
    return BulkActionResponse(
        succeeded=report.succeeded,
        failed=report.failed,
        errors=report.errors,
        message=message,
    )


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


@router.get("/transactions/pending", response_model=AdminTransactionListResponse)
async def pending_transactions(db: AsyncSession = Depends(get_session)) -> AdminTransactionListResponse:
    return await _with_users(db, await list_pending(db))


@router.get("/transactions", response_model=AdminTransactionListResponse)
async def all_transactions(
    limit: int = Query(DEFAULT_LIST_LIMIT, ge=1, le=1000),
    db: AsyncSession = Depends(get_session),
) -> AdminTransactionListResponse:
    return await _with_users(db, await list_all(db, limit))


@router.post("/transactions/approve-all", response_model=BulkActionResponse)
async def approve_all_pending(
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> BulkActionResponse:
    report = await approve_all(db, dispatcher)
    logger.info("bulk_approve", succeeded=report.succeeded, failed=report.failed)
    return _bulk_response("approved", report)


@router.post("/transactions/reject-all", response_model=BulkActionResponse)
async def reject_all_pending(
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> BulkActionResponse:
    report = await reject_all(db, dispatcher)
    logger.info("bulk_reject", succeeded=report.succeeded, failed=report.failed)
    return _bulk_response("rejected", report)


@router.post("/transactions/{tx_id}/approve", response_model=TransactionResponse)
async def approve(
    tx_id: int,
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> TransactionResponse:
    """Settle a pending deposit or withdrawal. 409 if it changed state or the balance no longer covers it."""
    tx = await approve_transaction(db, tx_id, dispatcher)
    logger.info("transaction_approved", transaction_id=tx_id, type=tx.type)
    return to_response(tx)


@router.post("/transactions/{tx_id}/reject", response_model=TransactionResponse)
async def reject(
    tx_id: int,
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> TransactionResponse:
    tx = await reject_transaction(db, tx_id, dispatcher)
    logger.info("transaction_rejected", transaction_id=tx_id, type=tx.type)
    return to_response(tx)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@router.get("/settings/min-withdraw", response_model=MinWithdrawSetting)
async def read_min_withdraw(db: AsyncSession = Depends(get_session)) -> MinWithdrawSetting:
    return MinWithdrawSetting(min_withdraw=float(await get_min_withdraw(db)), floor=float(MIN_WITHDRAW_FLOOR))


@router.put("/settings/min-withdraw", response_model=MinWithdrawSetting)
async def write_min_withdraw(
    body: MinWithdrawUpdate,
    db: AsyncSession = Depends(get_session),
) -> MinWithdrawSetting:
    """Values below the platform floor are stored as the floor."""
    stored = await set_min_withdraw(db, body.min_withdraw)
    return MinWithdrawSetting(min_withdraw=float(stored), floor=float(MIN_WITHDRAW_FLOOR))


# ---------------------------------------------------------------------------
# Stats & referrals
# ---------------------------------------------------------------------------


@router.get("/stats", response_model=AdminStatsResponse)
async def stats(db: AsyncSession = Depends(get_session)) -> AdminStatsResponse:
    s = await get_admin_stats(db)
    return AdminStatsResponse(
        total_users=s.total_users,
        total_referrals=s.total_referrals,
        active_referrals=s.active_referrals,
        total_exchanged=float(s.total_exchanged),
        total_mined_balance=float(s.total_mined_balance),
        pending_transactions=s.pending_transactions,
    )


@router.post("/referrals/{referral_id}/activate", response_model=ReferralActivationResponse)
async def activate(referral_id: int, db: AsyncSession = Depends(get_session)) -> ReferralActivationResponse:
    """Record the external signal that a referred user qualifies as active."""
    referral = await activate_referral(db, referral_id)
    return ReferralActivationResponse(
        id=referral.id,
        referrer_id=referral.referrer_id,
        status=referral.status,
        activated_at=referral.activated_at,
    )
