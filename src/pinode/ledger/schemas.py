"""Ledger entry variants and transaction response models.

Each transaction type is its own model carrying only the fields that type
uses; ``LedgerEntry`` is the tagged union accepted by the ledger.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from pinode.ledger.types import (
    CURRENCY_PI,
    CURRENCY_PINODE,
    STATUS_COMPLETED,
    STATUS_PENDING,
)

Status = Literal["pending", "completed", "failed"]
Currency = Literal["PINODE", "PI"]


class _Entry(BaseModel):
    amount: Decimal = Field(..., gt=0)
    description: str | None = None


class DepositEntry(_Entry):
    type: Literal["deposit"] = "deposit"
    currency: Currency = CURRENCY_PI
    status: Status = STATUS_PENDING
    network: str | None = None


class WithdrawEntry(_Entry):
    type: Literal["withdraw"] = "withdraw"
    currency: Currency = CURRENCY_PI
    status: Status = STATUS_PENDING
    address: str
    network: str | None = None


class ExchangeEntry(_Entry):
    """PiNode debited (``amount``) for PI credited (``amount_received``)."""

    type: Literal["exchange"] = "exchange"
    currency: Currency = CURRENCY_PINODE
    status: Status = STATUS_COMPLETED
    amount_received: Decimal


class ClaimEntry(_Entry):
    type: Literal["claim"] = "claim"
    currency: Currency = CURRENCY_PINODE
    status: Status = STATUS_COMPLETED
    idempotency_key: str | None = None


class ReferralEntry(_Entry):
    type: Literal["referral"] = "referral"
    currency: Currency = CURRENCY_PINODE
    status: Status = STATUS_COMPLETED


LedgerEntry = Annotated[
    Union[DepositEntry, WithdrawEntry, ExchangeEntry, ClaimEntry, ReferralEntry],
    Field(discriminator="type"),
]


class TransactionResponse(BaseModel):
    id: int
    user_id: int
    type: str
    amount: float
    amount_received: float | None = None
    currency: str
    status: str
    description: str | None = None
    network: str | None = None
    address: str | None = None
    created_at: datetime
    processed_at: datetime | None = None


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    total: int
