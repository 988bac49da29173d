"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tapfarm.config import get_settings
from tapfarm.database import close_db, create_tables, init_db
from tapfarm.health.router import router as health_router
from tapfarm.middleware import setup_middleware
from tapfarm.progression.router import router as progression_router
from tapfarm.redis_client import close_redis, init_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.environment == "development":
        # Production schema is managed outside this service
        await create_tables()

    try:
        await init_redis(settings.redis_url)
    except Exception:
        logger.warning("Redis unavailable; running without rate limiting and events", exc_info=True)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Tap Farm API",
        description="Progression and rewards engine for the Tap Farm Telegram mini-app",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(progression_router)

    return app


app = create_app()
