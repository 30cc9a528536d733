"""Platform settings: the minimum withdrawal amount.

The stored value is clamped to the platform floor on every write, and on
every read the floor is applied again, so a bad or missing row can never
lower the effective minimum.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pinode.db.models import PlatformSetting

logger = logging.getLogger(__name__)

MIN_WITHDRAW_KEY = "min_withdraw"
MIN_WITHDRAW_FLOOR = Decimal("100")


def clamp_min_withdraw(value: Decimal) -> Decimal:
    return max(Decimal(value), MIN_WITHDRAW_FLOOR)


async def get_min_withdraw(db: AsyncSession) -> Decimal:
    result = await db.execute(select(PlatformSetting).where(PlatformSetting.key == MIN_WITHDRAW_KEY))
    row = result.scalar_one_or_none()
    if row is None:
        return MIN_WITHDRAW_FLOOR
    try:
        stored = Decimal(row.value)
    except InvalidOperation:
        logger.warning("Unparseable %s setting %r, using floor", MIN_WITHDRAW_KEY, row.value)
        return MIN_WITHDRAW_FLOOR
    return clamp_min_withdraw(stored)


async def set_min_withdraw(db: AsyncSession, value: Decimal) -> Decimal:
    """Store the minimum withdrawal (clamped to the floor). Commits and returns the stored value."""
    clamped = clamp_min_withdraw(value)
    now = datetime.now(timezone.utc)

    result = await db.execute(select(PlatformSetting).where(PlatformSetting.key == MIN_WITHDRAW_KEY))
    row = result.scalar_one_or_none()
    if row is None:
        db.add(PlatformSetting(key=MIN_WITHDRAW_KEY, value=str(clamped), updated_at=now))
    else:
        row.value = str(clamped)
        row.updated_at = now
    await db.commit()

    if clamped != value:
        logger.info("Minimum withdrawal %s raised to platform floor %s", value, clamped)
    return clamped
