"""Shelfwise API - application factory and lifespan.

Invariants:
    - Every router is listed in ROUTERS; nothing is auto-discovered
    - Logging and the database are set up in the lifespan, not at import time,
      so tests can swap database.db_manager before the first request
    - The engine is disposed on shutdown

Design Decisions:
    - create_app() builds the app from Settings; the module-level `app` is the
      one uvicorn serves (`uvicorn shelfwise.main:app`)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shelfwise.api.error_handlers import register_error_handlers
from shelfwise.api.routes import (
    analytics, attendance, book_summaries, circulation, dashboard, health,
)
from shelfwise.api.routes.health import SERVICE_VERSION
from shelfwise.config import Settings, get_settings
from shelfwise.infrastructure import database
from shelfwise.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)

ROUTERS = (
    health.router,
    circulation.router,
    attendance.router,
    book_summaries.router,
    analytics.router,
    dashboard.router,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    manager = database.init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    logger.info(f"Shelfwise API {SERVICE_VERSION} started")
    try:
        yield
    finally:
        await manager.engine.dispose()
        logger.info("Shelfwise API stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    application = FastAPI(
        title="Shelfwise API", version=SERVICE_VERSION, lifespan=lifespan,
    )
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    for router in ROUTERS:
        application.include_router(router)
    register_error_handlers(application)
    return application


app = create_app()
