"""Mission endpoints: catalog with progress, completion and reward claim."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from pinode.auth.dependencies import get_current_user
from pinode.database import get_session
from pinode.db.models import User
from pinode.missions.catalog import MISSIONS, get_mission
from pinode.missions.schemas import MissionClaimResponse, MissionListResponse, MissionResponse
from pinode.missions.service import claim_mission, complete_mission, get_user_missions
from pinode.notifications.dispatcher import NotificationDispatcher, get_dispatcher
from pinode.redis_client import get_optional_redis

router = APIRouter(prefix="/api/v1/missions", tags=["Missions"])


@router.get("", response_model=MissionListResponse)
async def list_missions(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> MissionListResponse:
    records = {r.mission_id: r for r in await get_user_missions(db, user.id)}
    items = []
    for m in MISSIONS:
        record = records.get(m.id)
        items.append(MissionResponse(
            id=m.id,
            title=m.title,
            description=m.description,
            reward=float(m.reward),
            url=m.url,
            kind=m.kind,
            status=record.status if record else "available",
            claimed_at=record.claimed_at if record else None,
        ))
    return MissionListResponse(missions=items)


@router.post("/{mission_id}/complete", response_model=MissionResponse)
async def mark_complete(
    mission_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> MissionResponse:
    mission = get_mission(mission_id)
    record = await complete_mission(db, user.id, mission_id)
    return MissionResponse(
        id=mission.id,
        title=mission.title,
        description=mission.description,
        reward=float(mission.reward),
        url=mission.url,
        kind=mission.kind,
        status=record.status,
        claimed_at=record.claimed_at,
    )


@router.post("/{mission_id}/claim", response_model=MissionClaimResponse)
async def claim(
    mission_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    redis: Redis | None = Depends(get_optional_redis),
) -> MissionClaimResponse:
    """Claim a completed mission's reward; repeat calls report the first claim."""
    result = await claim_mission(db, redis, user.id, mission_id, dispatcher)
    return MissionClaimResponse(
        mission_id=result.mission_id,
        reward=float(result.reward),
        already_claimed=result.already_claimed,
        transaction_id=result.transaction_id,
        message=result.message,
    )
