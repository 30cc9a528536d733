"""Transaction types, statuses and the currency -> balance column mapping."""

from __future__ import annotations

from decimal import Decimal

from pinode.errors import ValidationFailed

TYPE_DEPOSIT = "deposit"
TYPE_WITHDRAW = "withdraw"
TYPE_EXCHANGE = "exchange"
TYPE_CLAIM = "claim"
TYPE_REFERRAL = "referral"
TRANSACTION_TYPES = (TYPE_DEPOSIT, TYPE_WITHDRAW, TYPE_EXCHANGE, TYPE_CLAIM, TYPE_REFERRAL)

# Only these types go through admin approval.
ADMIN_GATED_TYPES = (TYPE_DEPOSIT, TYPE_WITHDRAW)

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

# PINODE is the mined token, PI the network token.
CURRENCY_PINODE = "PINODE"
CURRENCY_PI = "PI"

BALANCE_COLUMNS = {
    CURRENCY_PINODE: "mined_balance",
    CURRENCY_PI: "network_balance",
}

# 20 PiNode buy 1 PI.
CONVERSION_RATE = Decimal("20")

ZERO = Decimal("0")


def balance_column(currency: str) -> str:
    """Name of the users column that holds ``currency``."""
    try:
        return BALANCE_COLUMNS[currency.upper()]
    except KeyError:
        raise ValidationFailed(f"Unsupported currency: {currency}") from None
