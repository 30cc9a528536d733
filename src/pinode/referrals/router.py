"""Referral endpoints: stats, bonus claim and code lookup."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from pinode.auth.dependencies import get_current_user
from pinode.database import get_session
from pinode.db.models import User
from pinode.notifications.dispatcher import NotificationDispatcher, get_dispatcher
from pinode.referrals.codes import normalize_referral_code
from pinode.referrals.schemas import ReferralClaimResponse, ReferralCodeResponse, ReferralStatsResponse
from pinode.referrals.service import claim_bonus, compute_stats
from pinode.users.router import referral_link
from pinode.users.service import get_user_by_referral_code
from pinode.wallet.service import pi_for

router = APIRouter(prefix="/api/v1/referrals", tags=["Referrals"])


@router.get("/stats", response_model=ReferralStatsResponse)
async def referral_stats(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ReferralStatsResponse:
    stats = await compute_stats(db, user.id)
    return ReferralStatsResponse(
        referral_code=user.referral_code,
        referral_link=referral_link(user.referral_code),
        total=stats.total,
        active=stats.active,
        total_bonus_earned=float(stats.total_bonus_earned),
        pending_bonus=float(stats.pending_bonus),
        pending_bonus_pi=float(pi_for(stats.pending_bonus)),
    )


@router.post("/claim", response_model=ReferralClaimResponse)
async def claim_referral_bonus(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> ReferralClaimResponse:
    """Claim every pending referral bonus. Nothing to claim is a normal 200 response."""
    result = await claim_bonus(db, user.id, dispatcher)
    return ReferralClaimResponse(
        claimed=result.claimed,
        amount=float(result.amount),
        referrals_claimed=result.referrals_claimed,
        transaction_id=result.transaction_id,
        message=result.message,
    )


@router.get("/resolve/{code}", response_model=ReferralCodeResponse)
async def resolve_code(code: str, db: AsyncSession = Depends(get_session)) -> ReferralCodeResponse:
    """Public lookup behind /ref/<code> links."""
    referrer = await get_user_by_referral_code(db, code)
    return ReferralCodeResponse(
        referral_code=normalize_referral_code(code),
        valid=referrer is not None,
        referrer_username=referrer.username if referrer else None,
    )
