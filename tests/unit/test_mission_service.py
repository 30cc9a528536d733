"""Mission ledger: completion, forward-only status and exactly-once claims."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy import func, select

from pinode.db.models import Transaction
from pinode.errors import InvalidMissionTransition, NotFound, ValidationFailed
from pinode.ledger.schemas import ClaimEntry
from pinode.ledger.service import create_transaction
from pinode.missions import service as mission_service
from pinode.missions.catalog import MISSIONS, get_mission
from pinode.missions.service import (
    STATUS_CLAIMED,
    STATUS_COMPLETED,
    claim_mission,
    complete_mission,
    get_user_missions,
    mission_claim_key,
    upsert_status,
)
from pinode.users.service import get_user_by_id


async def _claim_count(db, user_id):
    result = await db.execute(
        select(func.count()).select_from(Transaction).where(
            Transaction.user_id == user_id, Transaction.type == "claim"
        )
    )
    return result.scalar_one()


class TestCatalog:
    def test_rewards(self):
        rewards = {m.id: m.reward for m in MISSIONS}
        assert rewards["follow_twitter"] == Decimal("200")
        assert rewards["retweet_twitter_1"] == Decimal("150")
        assert len(MISSIONS) == 5

    def test_unknown_mission(self):
        with pytest.raises(NotFound):
            get_mission("moon_landing")


class TestStatus:
    async def test_complete_then_claimed(self, db_session, make_user):
        user = await make_user()
        record = await complete_mission(db_session, user.id, "follow_twitter")
        assert record.status == STATUS_COMPLETED

        await upsert_status(db_session, user.id, "follow_twitter", STATUS_CLAIMED, Decimal("200"))
        await db_session.commit()
        records = await get_user_missions(db_session, user.id)
        assert [(r.mission_id, r.status) for r in records] == [("follow_twitter", STATUS_CLAIMED)]
        assert records[0].claimed_at is not None

    async def test_claimed_cannot_go_back(self, db_session, make_user):
        user = await make_user()
        await upsert_status(db_session, user.id, "follow_twitter", STATUS_CLAIMED, Decimal("200"))
        with pytest.raises(InvalidMissionTransition):
            await upsert_status(db_session, user.id, "follow_twitter", STATUS_COMPLETED, Decimal("200"))

    async def test_unknown_status(self, db_session, make_user):
        user = await make_user()
        with pytest.raises(ValidationFailed):
            await upsert_status(db_session, user.id, "follow_twitter", "started", Decimal("200"))


class TestClaim:
    async def test_claim_credits_once(self, db_session, make_user, dispatcher, mock_notifier):
        user = await make_user(telegram_id=4242)
        await complete_mission(db_session, user.id, "follow_twitter")

        first = await claim_mission(db_session, None, user.id, "follow_twitter", dispatcher)
        second = await claim_mission(db_session, None, user.id, "follow_twitter", dispatcher)
        await dispatcher.drain()

        assert first.already_claimed is False
        assert first.reward == Decimal("200")
        assert second.already_claimed is True
        assert second.transaction_id == first.transaction_id
        assert Decimal((await get_user_by_id(db_session, user.id)).mined_balance) == Decimal("200")
        assert await _claim_count(db_session, user.id) == 1
        mock_notifier.send.assert_awaited_once()

    async def test_claim_records_description_and_key(self, db_session, make_user):
        user = await make_user()
        await complete_mission(db_session, user.id, "retweet_twitter_2")
        result = await claim_mission(db_session, None, user.id, "retweet_twitter_2")

        tx = (await db_session.execute(
            select(Transaction).where(Transaction.id == result.transaction_id)
        )).scalar_one()
        assert tx.idempotency_key == mission_claim_key(user.id, "retweet_twitter_2")
        assert tx.description == "Claimed 150 PiNode for completing: Retweet Twitter Post"

    async def test_must_complete_first(self, db_session, make_user):
        user = await make_user()
        with pytest.raises(ValidationFailed):
            await claim_mission(db_session, None, user.id, "join_telegram_group")
        assert Decimal((await get_user_by_id(db_session, user.id)).mined_balance) == Decimal("0")

    async def test_cache_hit_short_circuits(self, db_session, make_user):
        user = await make_user()
        redis = AsyncMock()
        redis.sismember.return_value = True

        result = await claim_mission(db_session, redis, user.id, "follow_twitter")

        assert result.already_claimed is True
        assert await _claim_count(db_session, user.id) == 0

    async def test_claim_marks_cache(self, db_session, make_user):
        user = await make_user()
        await complete_mission(db_session, user.id, "follow_twitter")
        redis = AsyncMock()
        redis.sismember.return_value = False

        await claim_mission(db_session, redis, user.id, "follow_twitter")

        redis.sadd.assert_awaited_once_with(f"missions:claimed:{user.id}", "follow_twitter")

    async def test_redis_failure_falls_back_to_ledger(self, db_session, make_user):
        user = await make_user()
        await complete_mission(db_session, user.id, "follow_twitter")
        redis = AsyncMock()
        redis.sismember.side_effect = RedisConnectionError("down")
        redis.sadd.side_effect = RedisConnectionError("down")

        first = await claim_mission(db_session, redis, user.id, "follow_twitter")
        second = await claim_mission(db_session, redis, user.id, "follow_twitter")

        assert first.already_claimed is False
        assert second.already_claimed is True
        assert await _claim_count(db_session, user.id) == 1


class TestConcurrentClaim:
    async def test_key_collision_returns_earlier_claim(self, db_session, make_user):
        user = await make_user()
        user_id = user.id
        await complete_mission(db_session, user_id, "follow_twitter")
        # A second request whose claim row lands after this one's ledger check.
        earlier = await create_transaction(
            db_session,
            user_id,
            ClaimEntry(amount=Decimal("200"), idempotency_key=mission_claim_key(user_id, "follow_twitter")),
        )
        earlier_id = earlier.id
        await db_session.commit()

        real_prior_outcome = mission_service._prior_outcome
        calls = {"n": 0}

        async def miss_first(db, uid, mission):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return await real_prior_outcome(db, uid, mission)

        with patch("pinode.missions.service._prior_outcome", side_effect=miss_first):
            result = await claim_mission(db_session, None, user_id, "follow_twitter")

        assert result.already_claimed is True
        assert result.transaction_id == earlier_id
        assert Decimal((await get_user_by_id(db_session, user_id)).mined_balance) == Decimal("0")
        assert await _claim_count(db_session, user_id) == 1
