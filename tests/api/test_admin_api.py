"""Admin endpoints: approvals, bulk actions, settings, stats, referral activation."""

from __future__ import annotations

from decimal import Decimal

from httpx import AsyncClient

from pinode.ledger.schemas import DepositEntry, WithdrawEntry
from pinode.ledger.service import create_transaction
from pinode.referrals.service import create_referral
from pinode.users.service import get_user_by_id

ADDRESS = "GCEXAMPLEPINETWORKADDRESS"


async def _pending(db, user_id, entry) -> int:
    tx = await create_transaction(db, user_id, entry)
    await db.commit()
    return tx.id


class TestAccess:
    async def test_non_admin_forbidden(self, client: AsyncClient, make_user, auth_headers):
        user = await make_user()
        response = await client.get("/api/v1/admin/transactions/pending", headers=auth_headers(user))
        assert response.status_code == 403


class TestTransactions:
    async def test_pending_list_includes_owner(self, client: AsyncClient, db_session, make_user, auth_headers):
        admin = await make_user(is_admin=True)
        user = await make_user("owner@example.com")
        tx_id = await _pending(db_session, user.id, DepositEntry(amount=Decimal("5")))

        response = await client.get("/api/v1/admin/transactions/pending", headers=auth_headers(admin))

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["transactions"][0]["id"] == tx_id
        assert data["transactions"][0]["user_email"] == "owner@example.com"

    async def test_approve_then_conflict(self, client: AsyncClient, db_session, make_user, auth_headers):
        admin = await make_user(is_admin=True)
        user = await make_user(network=10)
        tx_id = await _pending(db_session, user.id, DepositEntry(amount=Decimal("25")))

        first = await client.post(f"/api/v1/admin/transactions/{tx_id}/approve", headers=auth_headers(admin))
        second = await client.post(f"/api/v1/admin/transactions/{tx_id}/approve", headers=auth_headers(admin))

        assert first.status_code == 200
        assert first.json()["status"] == "completed"
        assert second.status_code == 409
        assert second.json()["code"] == "transaction_not_pending"
        assert Decimal((await get_user_by_id(db_session, user.id)).network_balance) == Decimal("35")

    async def test_withdraw_without_funds_stays_pending(
        self, client: AsyncClient, db_session, make_user, auth_headers
    ):
        admin = await make_user(is_admin=True)
        user = await make_user(network=30)
        tx_id = await _pending(db_session, user.id, WithdrawEntry(amount=Decimal("50"), address=ADDRESS))

        response = await client.post(f"/api/v1/admin/transactions/{tx_id}/approve", headers=auth_headers(admin))

        assert response.status_code == 409
        assert response.json()["code"] == "insufficient_balance"
        pending = await client.get("/api/v1/admin/transactions/pending", headers=auth_headers(admin))
        assert [t["id"] for t in pending.json()["transactions"]] == [tx_id]

    async def test_reject(self, client: AsyncClient, db_session, make_user, auth_headers):
        admin = await make_user(is_admin=True)
        user = await make_user(network=150)
        tx_id = await _pending(db_session, user.id, WithdrawEntry(amount=Decimal("120"), address=ADDRESS))

        response = await client.post(f"/api/v1/admin/transactions/{tx_id}/reject", headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.json()["status"] == "failed"
        assert Decimal((await get_user_by_id(db_session, user.id)).network_balance) == Decimal("150")

    async def test_unknown_transaction(self, client: AsyncClient, make_user, auth_headers):
        admin = await make_user(is_admin=True)
        response = await client.post("/api/v1/admin/transactions/999/approve", headers=auth_headers(admin))
        assert response.status_code == 404

    async def test_approve_all(self, client: AsyncClient, db_session, make_user, auth_headers):
        admin = await make_user(is_admin=True)
        rich = await make_user(network=500)
        poor = await make_user(network=30)
        await _pending(db_session, rich.id, DepositEntry(amount=Decimal("10")))
        await _pending(db_session, poor.id, WithdrawEntry(amount=Decimal("50"), address=ADDRESS))

        response = await client.post("/api/v1/admin/transactions/approve-all", headers=auth_headers(admin))

        assert response.status_code == 200
        data = response.json()
        assert (data["succeeded"], data["failed"]) == (1, 1)
        assert data["message"] == "Successfully approved 1 transaction(s). 1 failed."
        assert len(data["errors"]) == 1

    async def test_reject_all(self, client: AsyncClient, db_session, make_user, auth_headers):
        admin = await make_user(is_admin=True)
        user = await make_user()
        await _pending(db_session, user.id, DepositEntry(amount=Decimal("1")))
        await _pending(db_session, user.id, DepositEntry(amount=Decimal("2")))

        response = await client.post("/api/v1/admin/transactions/reject-all", headers=auth_headers(admin))

        assert response.json()["succeeded"] == 2
        listing = await client.get("/api/v1/admin/transactions?limit=10", headers=auth_headers(admin))
        assert {t["status"] for t in listing.json()["transactions"]} == {"failed"}


class TestSettings:
    async def test_min_withdraw_clamped(self, client: AsyncClient, make_user, auth_headers):
        admin = await make_user(is_admin=True)

        response = await client.put(
            "/api/v1/admin/settings/min-withdraw", json={"min_withdraw": 50}, headers=auth_headers(admin)
        )
        assert response.status_code == 200
        assert response.json() == {"min_withdraw": 100.0, "floor": 100.0}

        await client.put("/api/v1/admin/settings/min-withdraw", json={"min_withdraw": 150}, headers=auth_headers(admin))
        current = await client.get("/api/v1/admin/settings/min-withdraw", headers=auth_headers(admin))
        assert current.json()["min_withdraw"] == 150.0
        public = await client.get("/api/v1/wallet/min-withdraw")
        assert public.json()["min_withdraw"] == 150.0


class TestStatsAndReferrals:
    async def test_stats(self, client: AsyncClient, make_user, auth_headers):
        admin = await make_user(is_admin=True)
        await make_user(mined=100)

        response = await client.get("/api/v1/admin/stats", headers=auth_headers(admin))

        assert response.status_code == 200
        data = response.json()
        assert data["total_users"] == 1
        assert data["total_mined_balance"] == 100.0

    async def test_activate_referral(self, client: AsyncClient, db_session, make_user, auth_headers):
        admin = await make_user(is_admin=True)
        referrer = await make_user()
        friend = await make_user()
        referral, _ = await create_referral(db_session, referrer.id, referred_user_id=friend.id)
        await db_session.commit()

        response = await client.post(f"/api/v1/admin/referrals/{referral.id}/activate", headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json()["status"] == "active"

        again = await client.post(f"/api/v1/admin/referrals/{referral.id}/activate", headers=auth_headers(admin))
        assert again.status_code == 409
