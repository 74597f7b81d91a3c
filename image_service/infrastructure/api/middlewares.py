from __future__ import annotations

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from image_service.config import Settings

_DEV_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:30000",
    "http://127.0.0.1:3000",
]


def add_default_middlewares(app: FastAPI, settings: Settings) -> None:
    if settings.cors_origins:
        allowed_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    elif settings.env in ("development", "staging"):
        allowed_origins = _DEV_ORIGINS
    else:
        allowed_origins = ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        # Browsers reject credentials with a wildcard origin
        allow_credentials=allowed_origins != ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
