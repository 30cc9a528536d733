"""Referral response models."""

from __future__ import annotations

from pydantic import BaseModel


class ReferralStatsResponse(BaseModel):
    referral_code: str
    referral_link: str
    total: int
    active: int
    total_bonus_earned: float
    pending_bonus: float
    pending_bonus_pi: float


class ReferralClaimResponse(BaseModel):
    claimed: bool
    amount: float
    referrals_claimed: int
    transaction_id: int | None = None
    message: str


class ReferralCodeResponse(BaseModel):
    referral_code: str
    valid: bool
    referrer_username: str | None = None
