"""Mission response models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class MissionResponse(BaseModel):
    id: str
    title: str
    description: str
    reward: float
    url: str
    kind: str
    status: str  # available | completed | claimed
    claimed_at: datetime | None = None


class MissionListResponse(BaseModel):
    missions: list[MissionResponse]


class MissionClaimResponse(BaseModel):
    mission_id: str
    reward: float
    already_claimed: bool
    transaction_id: int | None = None
    message: str
