"""
Tier Advisor - application factory and the combined (monolith) app.

The chat and payments services are the same codebase mounted with different
router sets; see chat_main.py and payments_main.py. This module serves both
for local development and tests.

Usage:
    uvicorn app.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Iterable, Optional

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.db import Database
from app.api import CHAT_ROUTERS, PAYMENTS_ROUTERS, health_router
from app.errors import register_error_handlers
from app.structured_logging import RequestContextMiddleware, configure_logging

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def build_lifespan(database_url: Optional[str] = None, create_tables: bool = True):
    """Lifespan that owns the Database handle for the life of the process."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # ── Startup ───────────────────────────────────────────────
        configure_logging(settings.log_level, json_output=settings.log_json)
        logger.info("%s starting up (%s)", app.title, settings.environment)

        db = Database(database_url or settings.database_url, echo=settings.db_echo)
        app.state.db = db
        if create_tables:
            await db.create_all()
            logger.info("Database initialized")

        yield

        # ── Shutdown ──────────────────────────────────────────────
        await db.dispose()
        app.state.db = None
        logger.info("%s shutdown complete", app.title)

    return lifespan


def create_app(
    title: str,
    routers: Iterable[APIRouter],
    description: str = "",
    database_url: Optional[str] = None,
    create_tables: bool = True,
) -> FastAPI:
    app = FastAPI(
        title=title,
        description=description,
        version=VERSION,
        lifespan=build_lifespan(database_url, create_tables),
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)
    register_error_handlers(app)

    for router in routers:
        app.include_router(router, prefix=settings.api_prefix)
    app.include_router(health_router)

    @app.get(settings.api_prefix)
    async def api_root():
        return {"name": title, "status": "healthy", "version": VERSION}

    return app


app = create_app(
    "Tier Advisor",
    CHAT_ROUTERS + PAYMENTS_ROUTERS,
    description="Chat-driven plan recommendation with Stripe checkout",
)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.port, reload=not settings.is_production)
