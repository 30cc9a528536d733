"""Transaction history endpoint for the signed-in user."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pinode.auth.dependencies import get_current_user
from pinode.database import get_session
from pinode.db.models import User
from pinode.ledger.schemas import TransactionListResponse
from pinode.ledger.service import DEFAULT_RECENT_LIMIT, list_recent, to_response

router = APIRouter(prefix="/api/v1/transactions", tags=["Transactions"])


@router.get("", response_model=TransactionListResponse)
async def my_transactions(
    limit: int = Query(DEFAULT_RECENT_LIMIT, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> TransactionListResponse:
    """Latest transactions, newest first."""
    rows = await list_recent(db, user.id, limit)
    return TransactionListResponse(transactions=[to_response(tx) for tx in rows], total=len(rows))
