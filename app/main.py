"""
App builder auth server

Serves login, signup and organization switching, and gates app, folder
and user-management actions on group permissions.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.logging_config import configure_logging
from app.api.v1 import router as api_v1_router

settings = get_settings()
log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    from app.core.database import engine

    log.info(
        "server.starting",
        signups_disabled=settings.disable_signups,
        mail_enabled=settings.mail_enabled,
    )
    yield
    await engine.dispose()
    log.info("server.stopped")


def create_app() -> FastAPI:
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="App builder auth",
        description="Sessions, tenants and group permissions for the app builder.",
        version="0.1.0",
        lifespan=lifespan,
    )

    # The frontend sends the session as a bearer header; no cookies are involved.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PATCH"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        return {"status": "ok"}

    return app


app = create_app()
