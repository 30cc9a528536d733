"""CORS for the web app and the Telegram web-app origin."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pinode.config import Settings


def setup_cors(app: FastAPI, settings: Settings) -> None:
    origins = list(settings.cors_origins)
    if settings.app_base_url not in origins:
        origins.append(settings.app_base_url)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-Id"],
        expose_headers=["X-Request-Id", "X-RateLimit-Remaining", "X-RateLimit-Limit"],
    )
