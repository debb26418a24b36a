"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from codesrock.auth.router import router as auth_router
from codesrock.config import get_settings
from codesrock.database import close_db, get_session_factory, init_db
from codesrock.gamification.router import router as gamification_router
from codesrock.gamification.seed import seed_badges
from codesrock.health.router import router as health_router
from codesrock.learning.router import router as learning_router
from codesrock.middleware import setup_middleware
from codesrock.redis_client import close_redis, init_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings)
    await init_redis(settings.redis_url, settings.redis_max_connections)

    if settings.seed_badges_on_startup:
        try:
            async with get_session_factory()() as db:
                await seed_badges(db)
        except SQLAlchemyError:
            logger.warning("Badge seeding failed (run migrations first)", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="CodesRock API",
        description="Gamification backend for the CodesRock teacher-training platform",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(gamification_router)
    app.include_router(learning_router)

    return app


app = create_app()
