"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from pinode.admin.router import router as admin_router
from pinode.auth.router import router as auth_router
from pinode.bot.router import router as bot_router
from pinode.config import get_settings
from pinode.database import close_db, create_schema, init_db, is_sqlite
from pinode.health.router import router as health_router
from pinode.ledger.router import router as transactions_router
from pinode.middleware import setup_middleware
from pinode.missions.router import router as missions_router
from pinode.notifications.dispatcher import get_dispatcher
from pinode.redis_client import close_redis, init_redis
from pinode.referrals.router import router as referrals_router
from pinode.users.router import router as users_router
from pinode.wallet.router import router as wallet_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if is_sqlite(settings.database_url):
        await create_schema()
    await init_redis(settings.redis_url)
    logger.info("PiNode API %s started (%s)", settings.app_version, settings.environment)

    yield

    # Let in-flight notifications finish before the event loop goes away.
    dispatcher = get_dispatcher()
    if dispatcher.pending:
        logger.info("Draining %d pending notification(s)", dispatcher.pending)
        await dispatcher.drain()

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="PiNode Labs API",
        description="Rewards backend for PiNode Labs: balances, referrals, missions and the Telegram bot",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(transactions_router)
    app.include_router(wallet_router)
    app.include_router(referrals_router)
    app.include_router(missions_router)
    app.include_router(admin_router)
    app.include_router(bot_router)

    return app


app = create_app()
