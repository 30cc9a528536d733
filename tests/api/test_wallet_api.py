"""Wallet endpoints and the caller's transaction history."""

from __future__ import annotations

from httpx import AsyncClient

ADDRESS = "GCEXAMPLEPINETWORKADDRESS"


class TestExchange:
    async def test_exchange(self, client: AsyncClient, make_user, auth_headers):
        user = await make_user(mined=100)
        response = await client.post("/api/v1/wallet/exchange", json={"amount": 40}, headers=auth_headers(user))

        assert response.status_code == 200
        data = response.json()
        assert data["pi_received"] == 2.0
        assert data["mined_balance"] == 60.0
        assert data["network_balance"] == 2.0

    async def test_below_minimum(self, client: AsyncClient, make_user, auth_headers):
        user = await make_user(mined=100)
        response = await client.post("/api/v1/wallet/exchange", json={"amount": 15}, headers=auth_headers(user))

        assert response.status_code == 400
        assert response.json()["code"] == "validation_failed"

    async def test_insufficient(self, client: AsyncClient, make_user, auth_headers):
        user = await make_user(mined=10)
        response = await client.post("/api/v1/wallet/exchange", json={"amount": 20}, headers=auth_headers(user))

        assert response.status_code == 409
        assert response.json()["code"] == "insufficient_balance"


class TestWithdraw:
    async def test_withdraw_creates_pending(self, client: AsyncClient, make_user, auth_headers):
        user = await make_user(network=150)
        response = await client.post(
            "/api/v1/wallet/withdraw",
            json={"amount": 120, "address": ADDRESS},
            headers=auth_headers(user),
        )

        assert response.status_code == 201
        tx = response.json()["transaction"]
        assert tx["status"] == "pending"
        assert tx["type"] == "withdraw"

        history = await client.get("/api/v1/transactions", headers=auth_headers(user))
        assert [t["id"] for t in history.json()["transactions"]] == [tx["id"]]

        me = await client.get("/api/v1/users/me", headers=auth_headers(user))
        assert me.json()["balances"]["pi_network"] == 150.0

    async def test_duplicate_rejected(self, client: AsyncClient, make_user, auth_headers):
        user = await make_user(network=500)
        body = {"amount": 120, "address": ADDRESS}
        await client.post("/api/v1/wallet/withdraw", json=body, headers=auth_headers(user))
        response = await client.post("/api/v1/wallet/withdraw", json=body, headers=auth_headers(user))

        assert response.status_code == 400
        assert response.json()["code"] == "duplicate_request"

    async def test_min_withdraw_is_public(self, client: AsyncClient):
        response = await client.get("/api/v1/wallet/min-withdraw")
        assert response.status_code == 200
        assert response.json() == {"min_withdraw": 100.0}


class TestDeposit:
    async def test_deposit(self, client: AsyncClient, make_user, auth_headers):
        user = await make_user()
        response = await client.post(
            "/api/v1/wallet/deposit",
            json={"amount": 25, "network": "pi", "reference": "0xabc"},
            headers=auth_headers(user),
        )
        assert response.status_code == 201
        assert response.json()["transaction"]["status"] == "pending"
