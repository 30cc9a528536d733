"""Shared test fixtures.

Every test gets a fresh in-memory SQLite database built from the ORM
metadata, and a dispatcher whose notifier is an AsyncMock, so nothing
talks to Telegram. Redis is never initialised: the rate limiter and the
mission cache run in their degraded (no Redis) mode.
"""

from __future__ import annotations

import os

os.environ["PINODE_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["PINODE_JWT_SECRET"] = "test-secret-with-enough-length-for-hs256"
os.environ["PINODE_TELEGRAM_BOT_TOKEN"] = ""
os.environ["PINODE_TELEGRAM_WEBHOOK_SECRET"] = ""
os.environ["PINODE_LOG_FORMAT"] = "console"

from collections.abc import AsyncGenerator, Awaitable, Callable  # noqa: E402
from decimal import Decimal  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession  # noqa: E402

from pinode.auth.jwt import create_access_token  # noqa: E402
from pinode.config import get_settings  # noqa: E402
from pinode.database import close_db, create_schema, get_engine, get_session, init_db  # noqa: E402
from pinode.db.models import User  # noqa: E402
from pinode.ledger.types import CURRENCY_PI, CURRENCY_PINODE  # noqa: E402
from pinode.main import create_app  # noqa: E402
from pinode.notifications.dispatcher import NotificationDispatcher, set_dispatcher  # noqa: E402
from pinode.notifications.telegram import BaseNotifier  # noqa: E402
from pinode.users.service import create_user, credit_balance, get_user_by_id  # noqa: E402

get_settings.cache_clear()

MakeUser = Callable[..., Awaitable[User]]


@pytest_asyncio.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh schema per test. Disposing the engine drops the in-memory database."""
    await init_db(get_settings().database_url)
    await create_schema()
    yield get_engine()
    await close_db()


@pytest_asyncio.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for arranging state and asserting on it."""
    async for session in get_session():
        yield session
        break


@pytest.fixture
def mock_notifier() -> AsyncMock:
    notifier = AsyncMock(spec=BaseNotifier)
    notifier.send.return_value = True
    return notifier


@pytest_asyncio.fixture
async def dispatcher(mock_notifier: AsyncMock) -> AsyncGenerator[NotificationDispatcher, None]:
    """Dispatcher singleton backed by the mock notifier."""
    d = NotificationDispatcher(mock_notifier)
    set_dispatcher(d)
    yield d
    await d.drain()
    set_dispatcher(None)


@pytest_asyncio.fixture
async def client(db_engine: AsyncEngine, dispatcher: NotificationDispatcher) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app. The lifespan does not run; the DB is set up by ``db_engine``."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(db_session: AsyncSession) -> MakeUser:
    """Factory: create and commit an account with the given balances."""
    counter = {"n": 0}

    async def _make(
        email: str | None = None,
        *,
        mined: Decimal | int = 0,
        network: Decimal | int = 0,
        telegram_id: int | None = None,
        is_admin: bool = False,
        username: str | None = None,
    ) -> User:
        counter["n"] += 1
        if email is None and telegram_id is None:
            email = f"user{counter['n']}@example.com"
        user = await create_user(
            db_session,
            email=email,
            username=username,
            telegram_id=telegram_id,
            is_admin=is_admin,
        )
        if mined:
            await credit_balance(db_session, user.id, CURRENCY_PINODE, Decimal(mined))
        if network:
            await credit_balance(db_session, user.id, CURRENCY_PI, Decimal(network))
        await db_session.commit()
        fresh = await get_user_by_id(db_session, user.id)
        assert fresh is not None
        return fresh

    return _make


def bearer(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.is_admin)}"}


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    return bearer
