"""Referral code generation.

Codes are 8-character alphanumeric (A-Z, 0-9), drawn from a cryptographic
random source and assigned once when the account is created.
"""

from __future__ import annotations

import secrets
import string

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pinode.db.models import User

REFERRAL_CHARSET = string.ascii_uppercase + string.digits
REFERRAL_CODE_LENGTH = 8
MAX_ATTEMPTS = 10


def generate_referral_code() -> str:
    return "".join(secrets.choice(REFERRAL_CHARSET) for _ in range(REFERRAL_CODE_LENGTH))


def normalize_referral_code(code: str) -> str:
    """Codes are matched case-insensitively; surrounding whitespace is ignored."""
    return code.strip().upper()


async def generate_unique_referral_code(db: AsyncSession) -> str:
    """Draw codes until one is not taken by any user."""
    for _ in range(MAX_ATTEMPTS):
        code = generate_referral_code()
        taken = await db.execute(select(User.id).where(User.referral_code == code))
        if taken.scalar_one_or_none() is None:
            return code
    raise RuntimeError(f"Failed to generate unique referral code after {MAX_ATTEMPTS} attempts")
