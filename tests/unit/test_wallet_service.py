"""Exchange and withdrawal/deposit request rules."""

from __future__ import annotations

from decimal import Decimal

import pytest

from pinode.admin.settings_service import set_min_withdraw
from pinode.errors import DuplicateRequest, InsufficientBalance, ValidationFailed
from pinode.ledger.service import get_transaction, list_recent
from pinode.ledger.types import STATUS_COMPLETED, STATUS_PENDING
from pinode.users.service import get_user_by_id
from pinode.wallet.service import exchange, pi_for, request_deposit, request_withdrawal

ADDRESS = "GCEXAMPLEPINETWORKADDRESS"


class TestExchange:
    async def test_exchange_moves_both_balances(self, db_session, make_user, dispatcher, mock_notifier):
        user = await make_user(mined=100, telegram_id=9)

        result = await exchange(db_session, user.id, Decimal("40"), dispatcher)
        await dispatcher.drain()

        assert result.pi_received == Decimal("2")
        fresh = await get_user_by_id(db_session, user.id)
        assert Decimal(fresh.mined_balance) == Decimal("60")
        assert Decimal(fresh.network_balance) == Decimal("2")

        tx = await get_transaction(db_session, result.transaction_id)
        assert tx.type == "exchange"
        assert tx.status == STATUS_COMPLETED
        assert Decimal(tx.amount_received) == Decimal("2")
        mock_notifier.send.assert_awaited_once()

    @pytest.mark.parametrize("amount", ["15", "0", "-20", "20.5"])
    async def test_rejects_invalid_amounts(self, db_session, make_user, amount):
        user = await make_user(mined=100)
        with pytest.raises(ValidationFailed):
            await exchange(db_session, user.id, Decimal(amount))
        assert await list_recent(db_session, user.id) == []

    async def test_minimum_is_accepted(self, db_session, make_user):
        user = await make_user(mined=20)
        result = await exchange(db_session, user.id, Decimal("20"))
        assert result.pi_received == Decimal("1")

    async def test_insufficient_balance(self, db_session, make_user):
        user = await make_user(mined=30)
        with pytest.raises(InsufficientBalance):
            await exchange(db_session, user.id, Decimal("40"))
        assert Decimal((await get_user_by_id(db_session, user.id)).mined_balance) == Decimal("30")

    def test_conversion_rate(self):
        assert pi_for(Decimal("100")) == Decimal("5")


class TestWithdrawalRequest:
    async def test_creates_pending_without_touching_balance(self, db_session, make_user):
        user = await make_user(network=150)

        tx = await request_withdrawal(db_session, user.id, Decimal("120"), f"  {ADDRESS}  ", "pi")

        assert tx.status == STATUS_PENDING
        assert tx.address == ADDRESS
        assert Decimal((await get_user_by_id(db_session, user.id)).network_balance) == Decimal("150")

    async def test_below_minimum(self, db_session, make_user):
        user = await make_user(network=500)
        with pytest.raises(ValidationFailed, match="Minimum withdrawal is 100 PI"):
            await request_withdrawal(db_session, user.id, Decimal("99"), ADDRESS)

    async def test_minimum_follows_setting(self, db_session, make_user):
        user = await make_user(network=500)
        await set_min_withdraw(db_session, Decimal("250"))
        with pytest.raises(ValidationFailed, match="250"):
            await request_withdrawal(db_session, user.id, Decimal("200"), ADDRESS)

    async def test_short_address(self, db_session, make_user):
        user = await make_user(network=500)
        with pytest.raises(ValidationFailed):
            await request_withdrawal(db_session, user.id, Decimal("100"), "   GABC   ")

    async def test_more_than_balance(self, db_session, make_user):
        user = await make_user(network=100)
        with pytest.raises(InsufficientBalance):
            await request_withdrawal(db_session, user.id, Decimal("120"), ADDRESS)

    async def test_duplicate_within_window(self, db_session, make_user):
        user = await make_user(network=500)
        await request_withdrawal(db_session, user.id, Decimal("120"), ADDRESS)

        with pytest.raises(DuplicateRequest):
            await request_withdrawal(db_session, user.id, Decimal("120"), ADDRESS)

        # A different amount is a different request.
        await request_withdrawal(db_session, user.id, Decimal("130"), ADDRESS)


class TestDepositRequest:
    async def test_pending_deposit(self, db_session, make_user):
        user = await make_user()
        tx = await request_deposit(db_session, user.id, Decimal("12.5"), network="pi", reference="abc")

        assert tx.status == STATUS_PENDING
        assert tx.type == "deposit"
        assert "ref abc" in tx.description
        assert Decimal((await get_user_by_id(db_session, user.id)).network_balance) == Decimal("0")

    async def test_non_positive(self, db_session, make_user):
        user = await make_user()
        with pytest.raises(ValidationFailed):
            await request_deposit(db_session, user.id, Decimal("0"))
