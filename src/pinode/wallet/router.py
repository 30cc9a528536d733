"""Wallet endpoints: exchange, withdrawal and deposit requests."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pinode.admin.settings_service import get_min_withdraw
from pinode.auth.dependencies import get_current_user
from pinode.database import get_session
from pinode.db.models import User
from pinode.ledger.service import to_response
from pinode.notifications.dispatcher import NotificationDispatcher, get_dispatcher
from pinode.wallet.schemas import (
    DepositRequest,
    ExchangeRequest,
    ExchangeResponse,
    MinWithdrawResponse,
    PendingRequestResponse,
    WithdrawRequest,
)
from pinode.wallet.service import exchange, request_deposit, request_withdrawal

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/wallet", tags=["Wallet"])


@router.post("/exchange", response_model=ExchangeResponse)
async def exchange_pinode(
    body: ExchangeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> ExchangeResponse:
    """Convert PiNode into PI Network at 20:1."""
    result = await exchange(db, user.id, body.amount, dispatcher)
    return ExchangeResponse(
        transaction_id=result.transaction_id,
        pinode_spent=float(result.pinode_spent),
        pi_received=float(result.pi_received),
        mined_balance=float(result.mined_balance),
        network_balance=float(result.network_balance),
        message=(
            f"Successfully exchanged {int(result.pinode_spent):,} PiNode "
            f"into {result.pi_received:.4f} PI Network."
        ),
    )


@router.post("/withdraw", response_model=PendingRequestResponse, status_code=201)
async def withdraw(
    body: WithdrawRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> PendingRequestResponse:
    """Submit a PI withdrawal for admin approval."""
    tx = await request_withdrawal(db, user.id, body.amount, body.address, body.network)
    logger.info("withdrawal_requested", user_id=user.id, transaction_id=tx.id)
    return PendingRequestResponse(
        transaction=to_response(tx),
        message="Withdrawal request submitted. Please wait for admin approval.",
    )


@router.post("/deposit", response_model=PendingRequestResponse, status_code=201)
async def deposit(
    body: DepositRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> PendingRequestResponse:
    """Report a deposit; it is credited after an admin verifies it on chain."""
    tx = await request_deposit(db, user.id, body.amount, body.currency, body.network, body.reference)
    logger.info("deposit_requested", user_id=user.id, transaction_id=tx.id)
    return PendingRequestResponse(
        transaction=to_response(tx),
        message="Deposit submitted. It will be credited after verification.",
    )


@router.get("/min-withdraw", response_model=MinWithdrawResponse)
async def min_withdraw(db: AsyncSession = Depends(get_session)) -> MinWithdrawResponse:
    return MinWithdrawResponse(min_withdraw=float(await get_min_withdraw(db)))
