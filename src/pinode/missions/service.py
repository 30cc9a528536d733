"""Mission ledger: per-user progress and exactly-once reward claims.

A claim is recognised as already made when either the Redis claimed-set
cache or the ledger holds it. The ledger check is authoritative: claim
transactions carry a unique idempotency key per (user, mission), so a
concurrent duplicate fails at the database and reports the earlier result.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING

from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pinode.db.models import UserMission
from pinode.errors import InvalidMissionTransition, ValidationFailed
from pinode.ledger.schemas import ClaimEntry
from pinode.ledger.service import create_transaction, find_by_idempotency_key
from pinode.ledger.types import CURRENCY_PINODE
from pinode.missions.catalog import Mission, get_mission
from pinode.notifications import templates
from pinode.notifications.dispatcher import NotificationDispatcher
from pinode.users.service import credit_balance, require_user

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_CLAIMED = "claimed"
_STATUS_ORDER = {STATUS_COMPLETED: 1, STATUS_CLAIMED: 2}


@dataclass(frozen=True)
class MissionClaimResult:
    mission_id: str
    reward: Decimal
    already_claimed: bool
    transaction_id: int | None = None

    @property
    def message(self) -> str:
        if self.already_claimed:
            return "Mission reward already claimed"
        return f"Claimed {int(self.reward)} PiNode"


def mission_claim_key(user_id: int, mission_id: str) -> str:
    return f"mission:{user_id}:{mission_id}"


def _cache_key(user_id: int) -> str:
    return f"missions:claimed:{user_id}"


async def get_user_missions(db: AsyncSession, user_id: int) -> Sequence[UserMission]:
    result = await db.execute(
        select(UserMission)
        .where(UserMission.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().all()


async def _get_record(db: AsyncSession, user_id: int, mission_id: str) -> UserMission | None:
    result = await db.execute(
        select(UserMission)
        .where(UserMission.user_id == user_id, UserMission.mission_id == mission_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def upsert_status(
    db: AsyncSession,
    user_id: int,
    mission_id: str,
    status: str,
    reward: Decimal,
    claimed_at: datetime | None = None,
) -> UserMission:
    """Create or advance a mission record. Moving claimed -> completed raises. Does not commit."""
    if status not in _STATUS_ORDER:
        raise ValidationFailed(f"Invalid mission status: {status}")

    now = datetime.now(timezone.utc)
    record = await _get_record(db, user_id, mission_id)
    if record is None:
        record = UserMission(
            user_id=user_id,
            mission_id=mission_id,
            status=status,
            reward=reward,
            completed_at=now,
            claimed_at=(claimed_at or now) if status == STATUS_CLAIMED else None,
        )
        db.add(record)
        await db.flush()
        return record

    if _STATUS_ORDER[status] < _STATUS_ORDER[record.status]:
        raise InvalidMissionTransition(f"Mission {mission_id} is already {record.status}")
    if status == record.status:
        return record

    record.status = status
    record.reward = reward
    if status == STATUS_CLAIMED:
        record.claimed_at = claimed_at or now
    await db.flush()
    return record


async def complete_mission(db: AsyncSession, user_id: int, mission_id: str) -> UserMission:
    """Mark a mission as done by the user. Claimed missions are returned unchanged. Commits."""
    mission = get_mission(mission_id)
    await require_user(db, user_id)
    record = await _get_record(db, user_id, mission_id)
    if record is not None:
        return record
    record = await upsert_status(db, user_id, mission.id, STATUS_COMPLETED, mission.reward)
    await db.commit()
    logger.info("Mission completed: user=%d mission=%s", user_id, mission_id)
    return record


async def _cached_as_claimed(redis: Redis | None, user_id: int, mission_id: str) -> bool:
    if redis is None:
        return False
    try:
        return bool(await redis.sismember(_cache_key(user_id), mission_id))
    except RedisError:
        logger.warning("Mission claim cache read failed for user %d", user_id, exc_info=True)
        return False


async def _remember_claimed(redis: Redis | None, user_id: int, mission_id: str) -> None:
    if redis is None:
        return
    try:
        await redis.sadd(_cache_key(user_id), mission_id)
    except RedisError:
        logger.warning("Mission claim cache write failed for user %d", user_id, exc_info=True)


async def _prior_outcome(db: AsyncSession, user_id: int, mission: Mission) -> MissionClaimResult | None:
    prior = await find_by_idempotency_key(db, mission_claim_key(user_id, mission.id))
    if prior is None:
        return None
    return MissionClaimResult(
        mission_id=mission.id,
        reward=Decimal(prior.amount),
        already_claimed=True,
        transaction_id=prior.id,
    )


async def claim_mission(
    db: AsyncSession,
    redis: Redis | None,
    user_id: int,
    mission_id: str,
    dispatcher: NotificationDispatcher | None = None,
) -> MissionClaimResult:
    """Credit a completed mission's reward exactly once.

    Repeat calls return the earlier outcome with ``already_claimed=True`` and
    change nothing. Commits on success, rolls back on failure.
    """
    mission = get_mission(mission_id)
    user = await require_user(db, user_id)
    telegram_id = user.telegram_id

    if await _cached_as_claimed(redis, user_id, mission.id):
        prior = await _prior_outcome(db, user_id, mission)
        return prior or MissionClaimResult(mission_id=mission.id, reward=mission.reward, already_claimed=True)

    prior = await _prior_outcome(db, user_id, mission)
    if prior is not None:
        await _remember_claimed(redis, user_id, mission.id)
        return prior

    record = await _get_record(db, user_id, mission.id)
    if record is None:
        raise ValidationFailed("Complete the mission before claiming its reward")
    if record.status == STATUS_CLAIMED:
        return MissionClaimResult(mission_id=mission.id, reward=Decimal(record.reward), already_claimed=True)

    try:
        await credit_balance(db, user_id, CURRENCY_PINODE, mission.reward)
        tx = await create_transaction(
            db,
            user_id,
            ClaimEntry(
                amount=mission.reward,
                currency=CURRENCY_PINODE,
                description=f"Claimed {int(mission.reward)} PiNode for completing: {mission.title}",
                idempotency_key=mission_claim_key(user_id, mission.id),
            ),
        )
        tx_id = tx.id
        await upsert_status(db, user_id, mission.id, STATUS_CLAIMED, mission.reward)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning("Concurrent claim of mission %s by user %d", mission.id, user_id)
        prior = await _prior_outcome(db, user_id, mission)
        return prior or MissionClaimResult(mission_id=mission.id, reward=mission.reward, already_claimed=True)
    except Exception:
        await db.rollback()
        raise

    await _remember_claimed(redis, user_id, mission.id)
    logger.info("Mission claimed: user=%d mission=%s reward=%s tx=%d", user_id, mission.id, mission.reward, tx_id)
    if dispatcher is not None:
        dispatcher.dispatch(telegram_id, templates.mission_reward(mission.title, mission.reward))
    return MissionClaimResult(mission_id=mission.id, reward=mission.reward, already_claimed=False, transaction_id=tx_id)
