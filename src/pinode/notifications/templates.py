"""Telegram message templates (HTML parse mode)."""

from __future__ import annotations

from decimal import Decimal

from pinode.ledger.types import CONVERSION_RATE


def _pi_equivalent(pinode: Decimal) -> str:
    return f"{Decimal(pinode) / CONVERSION_RATE:.2f}"


def _fmt(amount: Decimal, places: int = 4) -> str:
    return f"{Decimal(amount):.{places}f}"


def new_referral(referred_label: str, total: int, active: int, pending_bonus: Decimal) -> str:
    return (
        "\U0001f389 <b>New Referral!</b>\n\n"
        "Someone joined using your referral link!\n\n"
        f"\U0001f464 User: <code>{referred_label}</code>\n"
        f"\U0001f465 Total Referrals: {total}\n"
        f"✅ Active Referrals: {active}\n"
        f"\U0001f4b0 Pending Bonus: {int(pending_bonus)} PiNode (≈ {_pi_equivalent(pending_bonus)} PI)\n\n"
        "Claim your bonus on the website!"
    )


def referral_bonus(amount: Decimal) -> str:
    return f"\U0001f381 Referral Bonus: +{int(amount)} PiNode (≈ {_pi_equivalent(amount)} PI)"


def mission_reward(title: str, amount: Decimal) -> str:
    return f"\U0001f3af Mission completed: <b>{title}</b>\n+{int(amount)} PiNode credited"


def exchange_completed(pi_received: Decimal) -> str:
    return f"\U0001f4b1 Exchange Completed: {_fmt(pi_received)} PI Network"


def deposit_approved(amount: Decimal, currency: str) -> str:
    return (
        "✅ <b>Deposit Approved</b>\n\n"
        f"<b>{_fmt(amount)} {currency}</b> has been added to your balance."
    )


def withdrawal_approved(amount: Decimal, currency: str, address: str | None) -> str:
    destination = f"\nDestination: <code>{address}</code>" if address else ""
    return (
        "✅ <b>Withdrawal Approved</b>\n\n"
        f"<b>{_fmt(amount)} {currency}</b> is on its way.{destination}"
    )


def withdrawal_rejected(amount: Decimal, currency: str) -> str:
    return (
        "❌ <b>Withdrawal Rejected</b>\n\n"
        f"Your request for {_fmt(amount)} {currency} was not approved. Your balance is unchanged."
    )
