"""Referral accounting.

Rules:
- One relationship per (referrer, referred) pair; nobody refers themselves
- Relationships start ``pending``; promotion to ``active`` is an external signal
- Each active relationship with no bonus stamped is worth one fixed reward
- Claiming stamps the reward onto those relationships and credits the
  referrer's mined balance in one unit of work; the stamp is a conditional
  UPDATE, so a duplicate claim finds nothing left to stamp
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pinode.config import get_settings
from pinode.db.models import Referral, User
from pinode.errors import NotFound, PreconditionFailed, ValidationFailed
from pinode.ledger.schemas import ClaimEntry
from pinode.ledger.service import create_transaction
from pinode.ledger.types import CURRENCY_PINODE, ZERO
from pinode.notifications import templates
from pinode.notifications.dispatcher import NotificationDispatcher
from pinode.users.service import credit_balance, get_user_by_referral_code, require_user

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_ACTIVE = "active"


def referral_reward() -> Decimal:
    return Decimal(get_settings().referral_reward)


@dataclass(frozen=True)
class ReferralStats:
    total: int
    active: int
    total_bonus_earned: Decimal
    pending_bonus: Decimal


@dataclass(frozen=True)
class ReferralClaimResult:
    claimed: bool
    amount: Decimal
    referrals_claimed: int = 0
    transaction_id: int | None = None

    @property
    def message(self) -> str:
        if not self.claimed:
            return "No pending referral bonus to claim"
        return f"Claimed {int(self.amount)} PiNode from {self.referrals_claimed} referral(s)"


# ---------------------------------------------------------------------------
# Relationships
# ---------------------------------------------------------------------------


async def get_referral(db: AsyncSession, referral_id: int) -> Referral:
    result = await db.execute(
        select(Referral).where(Referral.id == referral_id).execution_options(populate_existing=True)
    )
    referral = result.scalar_one_or_none()
    if referral is None:
        raise NotFound(f"Referral {referral_id} not found")
    return referral


async def _find_relationship(
    db: AsyncSession,
    referrer_id: int,
    referred_user_id: int | None,
    referred_telegram_id: str | None,
) -> Referral | None:
    stmt = select(Referral).where(Referral.referrer_id == referrer_id)
    if referred_user_id is not None:
        stmt = stmt.where(Referral.referred_user_id == referred_user_id)
    else:
        stmt = stmt.where(Referral.referred_telegram_id == referred_telegram_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def create_referral(
    db: AsyncSession,
    referrer_id: int,
    *,
    referred_user_id: int | None = None,
    referred_telegram_id: int | str | None = None,
) -> tuple[Referral, bool]:
    """Record that ``referrer_id`` referred someone. Returns (referral, created). Does not commit."""
    if referred_user_id is None and referred_telegram_id is None:
        raise ValueError("A referred user id or telegram id is required")
    if referred_user_id is not None and referred_user_id == referrer_id:
        raise ValidationFailed("You cannot use your own referral code")

    telegram_id = str(referred_telegram_id) if referred_telegram_id is not None else None
    existing = await _find_relationship(db, referrer_id, referred_user_id, telegram_id)
    if existing is not None:
        return existing, False

    referral = Referral(
        referrer_id=referrer_id,
        referred_user_id=referred_user_id,
        referred_telegram_id=telegram_id,
        status=STATUS_PENDING,
        bonus_earned=ZERO,
        created_at=datetime.now(timezone.utc),
    )
    db.add(referral)
    await db.flush()
    logger.info(
        "Referral recorded: id=%d referrer=%d referred_user=%s referred_telegram=%s",
        referral.id, referrer_id, referred_user_id, telegram_id,
    )
    return referral, True


async def attribute_referral(
    db: AsyncSession,
    code: str,
    referred: User,
) -> tuple[User, Referral] | None:
    """Attach ``referred`` to the owner of ``code``. Unknown codes are ignored. Does not commit."""
    referrer = await get_user_by_referral_code(db, code)
    if referrer is None:
        logger.info("Unknown referral code %r for user %d", code, referred.id)
        return None
    if referrer.id == referred.id:
        raise ValidationFailed("You cannot use your own referral code")

    referral, created = await create_referral(
        db,
        referrer.id,
        referred_user_id=referred.id,
        referred_telegram_id=referred.telegram_id,
    )
    return (referrer, referral) if created else None


async def activate_referral(db: AsyncSession, referral_id: int) -> Referral:
    """Promote a relationship pending -> active. Commits."""
    result = await db.execute(
        update(Referral)
        .where(Referral.id == referral_id, Referral.status == STATUS_PENDING)
        .values(status=STATUS_ACTIVE, activated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        current = (await get_referral(db, referral_id)).status
        await db.rollback()
        raise PreconditionFailed(f"Referral {referral_id} is already {current}")
    await db.commit()
    logger.info("Referral %d activated", referral_id)
    return await get_referral(db, referral_id)


# ---------------------------------------------------------------------------
# Stats and bonus claim
# ---------------------------------------------------------------------------


async def compute_stats(db: AsyncSession, user_id: int) -> ReferralStats:
    """Derived view over the user's relationships; nothing here is stored."""
    result = await db.execute(
        select(
            func.count(Referral.id),
            func.coalesce(func.sum(Referral.bonus_earned), 0),
        ).where(Referral.referrer_id == user_id)
    )
    total, bonus_sum = result.one()

    active_result = await db.execute(
        select(Referral.bonus_earned).where(
            Referral.referrer_id == user_id,
            Referral.status == STATUS_ACTIVE,
        )
    )
    active_bonuses = [Decimal(b or 0) for b in active_result.scalars().all()]
    unclaimed = sum(1 for b in active_bonuses if b == ZERO)

    return ReferralStats(
        total=total,
        active=len(active_bonuses),
        total_bonus_earned=Decimal(bonus_sum),
        pending_bonus=unclaimed * referral_reward(),
    )


async def claim_bonus(
    db: AsyncSession,
    user_id: int,
    dispatcher: NotificationDispatcher | None = None,
) -> ReferralClaimResult:
    """Credit every unclaimed active referral to the referrer's mined balance.

    Commits on success and rolls back on any failure. Returns a not-claimed
    result (not an error) when there is nothing to claim.
    """
    user = await require_user(db, user_id)
    telegram_id = user.telegram_id
    reward = referral_reward()

    candidates = await db.execute(
        select(Referral.id)
        .where(
            Referral.referrer_id == user_id,
            Referral.status == STATUS_ACTIVE,
            Referral.bonus_earned == 0,
        )
        .order_by(Referral.id)
    )
    referral_ids = list(candidates.scalars().all())
    if not referral_ids:
        return ReferralClaimResult(claimed=False, amount=ZERO)

    try:
        # Re-check under the same statement that stamps: rows another claim got to first no longer match.
        stamped = await db.execute(
            update(Referral)
            .where(
                Referral.id.in_(referral_ids),
                Referral.status == STATUS_ACTIVE,
                Referral.bonus_earned == 0,
            )
            .values(bonus_earned=reward)
            .execution_options(synchronize_session=False)
        )
        count = stamped.rowcount
        if count == 0:
            await db.rollback()
            return ReferralClaimResult(claimed=False, amount=ZERO)

        amount = reward * count
        await credit_balance(db, user_id, CURRENCY_PINODE, amount)
        tx = await create_transaction(
            db,
            user_id,
            ClaimEntry(
                amount=amount,
                currency=CURRENCY_PINODE,
                description=f"Referral bonus: {count} active referral(s) x {int(reward)} PiNode",
                idempotency_key=f"referral:{user_id}:{referral_ids[0]}-{referral_ids[-1]}",
            ),
        )
        tx_id = tx.id
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning("Concurrent referral claim for user %d rejected", user_id)
        return ReferralClaimResult(claimed=False, amount=ZERO)
    except Exception:
        await db.rollback()
        raise

    logger.info("Referral bonus claimed: user=%d amount=%s referrals=%d tx=%d", user_id, amount, count, tx_id)
    if dispatcher is not None:
        dispatcher.dispatch(telegram_id, templates.referral_bonus(amount))
    return ReferralClaimResult(claimed=True, amount=amount, referrals_claimed=count, transaction_id=tx_id)


async def notify_new_referral(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    referrer: User,
    referred_label: str,
) -> None:
    """Tell the referrer someone joined with their code (call after commit)."""
    if referrer.telegram_id is None:
        return
    stats = await compute_stats(db, referrer.id)
    dispatcher.dispatch(
        referrer.telegram_id,
        templates.new_referral(referred_label, stats.total, stats.active, stats.pending_bonus),
    )
