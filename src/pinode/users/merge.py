"""Folding a bot-provisioned account into an email account.

A chat that ran ``/start`` before registering owns an email-less account
with its own referral code, referral relationships, balances and history.
When the chat links an email account, all of that moves onto the email
account and the bot row is deleted, so nothing is left where no one can
claim it.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pinode.db.models import Referral, Transaction, User, UserMission
from pinode.ledger.types import CURRENCY_PI, CURRENCY_PINODE, ZERO
from pinode.users.service import balance_of, credit_balance, debit_balance, require_user

logger = logging.getLogger(__name__)


async def _target_has_relationship(db: AsyncSession, target_id: int, referral: Referral) -> bool:
    """Whether ``target_id`` already refers the person ``referral`` points at."""
    stmt = select(Referral.id).where(Referral.referrer_id == target_id)
    if referral.referred_user_id is not None:
        stmt = stmt.where(Referral.referred_user_id == referral.referred_user_id)
    else:
        stmt = stmt.where(Referral.referred_telegram_id == referral.referred_telegram_id)
    return (await db.execute(stmt.limit(1))).scalar_one_or_none() is not None


async def _move_referrals_made(db: AsyncSession, source_id: int, target_id: int) -> int:
    result = await db.execute(select(Referral).where(Referral.referrer_id == source_id))
    moved = 0
    for referral in result.scalars().all():
        if referral.referred_user_id == target_id or await _target_has_relationship(db, target_id, referral):
            await db.delete(referral)
            continue
        referral.referrer_id = target_id
        moved += 1
    await db.flush()
    return moved


async def _move_referrals_received(db: AsyncSession, source_id: int, target_id: int) -> None:
    result = await db.execute(select(Referral).where(Referral.referred_user_id == source_id))
    for referral in result.scalars().all():
        already = await db.execute(
            select(Referral.id).where(
                Referral.referrer_id == referral.referrer_id,
                Referral.referred_user_id == target_id,
            )
        )
        if referral.referrer_id == target_id or already.scalar_one_or_none() is not None:
            await db.delete(referral)
            continue
        referral.referred_user_id = target_id
    await db.flush()


async def _move_missions(db: AsyncSession, source_id: int, target_id: int) -> None:
    target_missions = await db.execute(select(UserMission.mission_id).where(UserMission.user_id == target_id))
    taken = set(target_missions.scalars().all())
    result = await db.execute(select(UserMission).where(UserMission.user_id == source_id))
    for record in result.scalars().all():
        if record.mission_id in taken:
            await db.delete(record)
        else:
            record.user_id = target_id
    await db.flush()


async def merge_bot_account(db: AsyncSession, source: User, target: User) -> None:
    """Move everything ``source`` owns onto ``target`` and delete ``source``. Does not commit.

    Relationships ``target`` already has with the same person are kept and
    the duplicate from ``source`` is dropped, as is any relationship that
    would make ``target`` its own referrer.
    """
    if source.email is not None:
        raise ValueError("Only email-less accounts can be merged away")
    source_id, target_id = source.id, target.id

    fresh = await require_user(db, source_id)
    for currency in (CURRENCY_PINODE, CURRENCY_PI):
        amount = balance_of(fresh, currency)
        if amount > ZERO:
            await debit_balance(db, source_id, currency, amount)
            await credit_balance(db, target_id, currency, amount)

    referrals_moved = await _move_referrals_made(db, source_id, target_id)
    await _move_referrals_received(db, source_id, target_id)
    await _move_missions(db, source_id, target_id)
    await db.execute(
        update(Transaction)
        .where(Transaction.user_id == source_id)
        .values(user_id=target_id)
        .execution_options(synchronize_session=False)
    )

    db.expunge(fresh)
    await db.execute(delete(User).where(User.id == source_id).execution_options(synchronize_session=False))
    logger.info(
        "Bot account %d merged into user %d: mined=%s network=%s referrals=%d",
        source_id, target_id, Decimal(fresh.mined_balance), Decimal(fresh.network_balance), referrals_moved,
    )
