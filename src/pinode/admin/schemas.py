"""Admin request/response models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from pinode.ledger.schemas import TransactionResponse


class AdminTransactionResponse(TransactionResponse):
    user_email: str | None = None
    user_telegram_username: str | None = None


class AdminTransactionListResponse(BaseModel):
    transactions: list[AdminTransactionResponse]
    total: int


class BulkActionResponse(BaseModel):
    succeeded: int
    failed: int
    errors: list[str]
    message: str


class MinWithdrawUpdate(BaseModel):
    min_withdraw: Decimal


class MinWithdrawSetting(BaseModel):
    min_withdraw: float
    floor: float


class AdminStatsResponse(BaseModel):
    total_users: int
    total_referrals: int
    active_referrals: int
    total_exchanged: float
    total_mined_balance: float
    pending_transactions: int


class ReferralActivationResponse(BaseModel):
    id: int
    referrer_id: int
    status: str
    activated_at: datetime | None = None
