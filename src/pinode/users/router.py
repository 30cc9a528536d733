"""User endpoints: own profile and balances."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from pinode.auth.dependencies import get_current_user
from pinode.config import get_settings
from pinode.db.models import User
from pinode.users.schemas import BalancesResponse, UserResponse

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def referral_link(code: str) -> str:
    return f"{get_settings().app_base_url.rstrip('/')}/ref/{code}"


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        username=user.username,
        telegram_linked=user.telegram_id is not None,
        telegram_username=user.telegram_username,
        referral_code=user.referral_code,
        referral_link=referral_link(user.referral_code),
        is_admin=user.is_admin,
        balances=BalancesResponse(
            pinode=float(user.mined_balance),
            pi_network=float(user.network_balance),
        ),
        created_at=user.created_at,
    )


@router.get("/me", response_model=UserResponse)
async def get_profile(user: User = Depends(get_current_user)) -> UserResponse:
    """Own profile with balances read fresh from the store."""
    return _user_response(user)
