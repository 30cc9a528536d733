"""Middleware registration."""

from fastapi import FastAPI

from pinode.config import Settings
from pinode.middleware.cors import setup_cors
from pinode.middleware.error_handler import setup_error_handlers
from pinode.middleware.logging import setup_logging
from pinode.middleware.rate_limit import RateLimitMiddleware
from pinode.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register middleware. Starlette runs them in reverse-add order, so CORS goes last to wrap 429s."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
