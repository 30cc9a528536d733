"""Account registration and login."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from pinode.auth.password import MIN_PASSWORD_LENGTH, hash_password, verify_password
from pinode.db.models import User
from pinode.errors import ValidationFailed
from pinode.notifications.dispatcher import NotificationDispatcher
from pinode.referrals.service import attribute_referral, notify_new_referral
from pinode.users.service import create_user, get_user_by_email

logger = logging.getLogger(__name__)


async def register_user(
    db: AsyncSession,
    email: str,
    password: str,
    username: str | None = None,
    referral_code: str | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> User:
    """Create an email account, attributing it to ``referral_code`` when the code is known. Commits."""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    try:
        user = await create_user(
            db,
            email=email,
            password_hash=hash_password(password),
            username=username,
        )
        attributed = await attribute_referral(db, referral_code, user) if referral_code else None
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    if attributed is not None and dispatcher is not None:
        referrer, _referral = attributed
        await notify_new_referral(db, dispatcher, referrer, user.email or str(user.id))
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> User | None:
    """Return the account when the email and password match, else None."""
    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Failed login for %s", email)
        return None
    return user
