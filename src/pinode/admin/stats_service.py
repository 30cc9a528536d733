"""Platform-wide figures for the admin overview."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pinode.db.models import Referral, Transaction, User
from pinode.ledger.service import count_pending
from pinode.ledger.types import STATUS_COMPLETED, TYPE_EXCHANGE


@dataclass(frozen=True)
class AdminStats:
    total_users: int
    total_referrals: int
    active_referrals: int
    total_exchanged: Decimal
    total_mined_balance: Decimal
    pending_transactions: int


async def get_admin_stats(db: AsyncSession) -> AdminStats:
    users = await db.execute(
        select(func.count(User.id), func.coalesce(func.sum(User.mined_balance), 0))
        .where(User.is_admin.is_(False))
    )
    total_users, mined_sum = users.one()

    referrals = await db.execute(select(func.count(Referral.id)))
    active = await db.execute(select(func.count(Referral.id)).where(Referral.status == "active"))

    exchanged = await db.execute(
        select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.type == TYPE_EXCHANGE,
            Transaction.status == STATUS_COMPLETED,
        )
    )

    return AdminStats(
        total_users=total_users,
        total_referrals=referrals.scalar_one(),
        active_referrals=active.scalar_one(),
        total_exchanged=Decimal(exchanged.scalar_one()),
        total_mined_balance=Decimal(mined_sum),
        pending_transactions=await count_pending(db),
    )
