"""User profile response models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class BalancesResponse(BaseModel):
    pinode: float
    pi_network: float


class UserResponse(BaseModel):
    id: int
    email: str | None = None
    username: str | None = None
    telegram_linked: bool
    telegram_username: str | None = None
    referral_code: str
    referral_link: str
    is_admin: bool
    balances: BalancesResponse
    created_at: datetime
