"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from strive.challenges.router import router as challenges_router
from strive.community.router import router as community_router
from strive.config import get_settings
from strive.cv.router import router as cv_router
from strive.database import close_db, init_db
from strive.health.router import router as health_router
from strive.jobs.router import router as jobs_router
from strive.leaderboard.router import router as leaderboard_router
from strive.middleware import setup_middleware
from strive.redis_client import close_redis, init_redis
from strive.roadmaps.router import router as roadmaps_router
from strive.skills.router import router as skills_router
from strive.users.router import router as users_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    # Lazy pool: Redis being down does not block startup.
    await init_redis(settings.redis_url)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Strive API",
        description="Backend API for Strive, a gamified career development platform",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(users_router)
    app.include_router(leaderboard_router)
    app.include_router(skills_router)
    app.include_router(community_router)
    app.include_router(challenges_router)
    app.include_router(roadmaps_router)
    app.include_router(cv_router)
    app.include_router(jobs_router)

    return app


app = create_app()
