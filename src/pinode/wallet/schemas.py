"""Request/response schemas for wallet endpoints."""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from pinode.ledger.schemas import TransactionResponse


class ExchangeRequest(BaseModel):
    amount: Decimal = Field(..., description="PiNode to convert; whole number, at least 20")


class ExchangeResponse(BaseModel):
    transaction_id: int
    pinode_spent: float
    pi_received: float
    mined_balance: float
    network_balance: float
    message: str


class WithdrawRequest(BaseModel):
    amount: Decimal
    address: str = Field(..., max_length=256)
    network: str | None = Field(None, max_length=32)


class DepositRequest(BaseModel):
    amount: Decimal
    currency: Literal["PI", "PINODE"] = "PI"
    network: str | None = Field(None, max_length=32)
    reference: str | None = Field(None, max_length=128)


class PendingRequestResponse(BaseModel):
    transaction: TransactionResponse
    message: str


class MinWithdrawResponse(BaseModel):
    min_withdraw: float
