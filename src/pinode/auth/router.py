"""Authentication endpoints: register and login."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from pinode.auth.jwt import create_access_token
from pinode.auth.schemas import LoginRequest, RegisterRequest, TokenResponse
from pinode.auth.service import authenticate, register_user
from pinode.database import get_session
from pinode.notifications.dispatcher import NotificationDispatcher, get_dispatcher

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> TokenResponse:
    """Create an account; an optional referral code attributes it to the referrer."""
    user = await register_user(
        db,
        email=body.email,
        password=body.password,
        username=body.username,
        referral_code=body.referral_code,
        dispatcher=dispatcher,
    )
    logger.info("user_registered", user_id=user.id, referred=bool(body.referral_code))
    return TokenResponse(access_token=create_access_token(user.id, user.is_admin), user_id=user.id, is_admin=user.is_admin)


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_session)) -> TokenResponse:
    user = await authenticate(db, body.email, body.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return TokenResponse(access_token=create_access_token(user.id, user.is_admin), user_id=user.id, is_admin=user.is_admin)
