"""Middleware tests: request ID, rate limiting fallback, CORS, error mapping."""

from httpx import AsyncClient


async def test_request_id_generated(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert len(response.headers["x-request-id"]) == 32


async def test_request_id_preserved(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


async def test_no_rate_limit_without_redis(client: AsyncClient) -> None:
    """Requests pass unthrottled, without rate-limit headers, when Redis is down."""
    for _ in range(5):
        response = await client.get("/version")
        assert response.status_code == 200
    assert "x-ratelimit-limit" not in response.headers


async def test_cors_preflight(client: AsyncClient) -> None:
    response = await client.options(
        "/version",
        headers={"Origin": "https://minety.com", "Access-Control-Request-Method": "GET"},
    )
    assert response.headers["access-control-allow-origin"] == "https://minety.com"


async def test_domain_error_shape(client: AsyncClient, make_user, auth_headers) -> None:
    """Business-rule failures carry a detail message and a machine code."""
    user = await make_user()
    response = await client.post("/api/v1/missions/moon_landing/claim", headers=auth_headers(user))
    assert response.status_code == 404
    assert response.json() == {"detail": "Unknown mission: moon_landing", "code": "not_found"}


async def test_validation_error_shape(client: AsyncClient, make_user, auth_headers) -> None:
    user = await make_user()
    response = await client.post("/api/v1/wallet/exchange", json={"amount": "lots"}, headers=auth_headers(user))
    assert response.status_code == 422
    assert response.json()["detail"] == "Validation error"
