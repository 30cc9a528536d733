"""Minimum-withdrawal setting is never below the platform floor."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from pinode.admin.settings_service import (
    MIN_WITHDRAW_FLOOR,
    MIN_WITHDRAW_KEY,
    clamp_min_withdraw,
    get_min_withdraw,
    set_min_withdraw,
)
from pinode.db.models import PlatformSetting


class TestMinWithdraw:
    def test_clamp(self):
        assert clamp_min_withdraw(Decimal("50")) == Decimal("100")
        assert clamp_min_withdraw(Decimal("150")) == Decimal("150")

    async def test_default_is_floor(self, db_session):
        assert await get_min_withdraw(db_session) == MIN_WITHDRAW_FLOOR

    async def test_write_below_floor_stores_floor(self, db_session):
        stored = await set_min_withdraw(db_session, Decimal("50"))
        assert stored == Decimal("100")
        assert await get_min_withdraw(db_session) == Decimal("100")

    async def test_write_above_floor(self, db_session):
        await set_min_withdraw(db_session, Decimal("150"))
        await set_min_withdraw(db_session, Decimal("175"))
        assert await get_min_withdraw(db_session) == Decimal("175")

    async def test_read_clamps_bad_rows(self, db_session):
        db_session.add(PlatformSetting(key=MIN_WITHDRAW_KEY, value="10", updated_at=datetime.now(timezone.utc)))
        await db_session.commit()
        assert await get_min_withdraw(db_session) == Decimal("100")

    async def test_read_ignores_garbage(self, db_session):
        db_session.add(PlatformSetting(key=MIN_WITHDRAW_KEY, value="lots", updated_at=datetime.now(timezone.utc)))
        await db_session.commit()
        assert await get_min_withdraw(db_session) == MIN_WITHDRAW_FLOOR
