"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from uconnect.admin.router import router as admin_router
from uconnect.auth.router import router as auth_router
from uconnect.config import get_settings
from uconnect.database import close_db, create_schema, init_db
from uconnect.health.router import router as health_router
from uconnect.media.storage import get_media_storage
from uconnect.middleware import setup_middleware
from uconnect.posts.router import router as posts_router
from uconnect.redis_client import close_redis, init_redis

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.auto_create_schema:
        await create_schema()
    await init_redis(settings.redis_url)
    get_media_storage().ensure_dirs()
    logger.info("app_started", environment=settings.environment, version=settings.app_version)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="UConnect API",
        description="Campus social network: accounts, verification, posts, likes and comments",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router)
    app.include_router(posts_router)
    app.include_router(admin_router)
    app.mount("/uploads", StaticFiles(directory=settings.uploads_dir, check_dir=False), name="uploads")

    return app
