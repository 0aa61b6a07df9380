"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncSession

from strive.config import get_settings
from strive.database import get_session
from strive.db.base import Base
from strive.redis_client import get_redis

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness check."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Readiness: database connectivity, schema presence and Redis."""
    checks: dict[str, object] = {}

    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    try:
        conn = await db.connection()
        existing = set(await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names()))
        missing = sorted(set(Base.metadata.tables) - existing)
        checks["schema"] = f"missing tables: {', '.join(missing)}" if missing else "ok"
    except Exception as exc:
        checks["schema"] = f"error: {exc}"

    try:
        redis = get_redis()
        await redis.ping()
        checks["redis"] = "ok"
    except Exception as exc:
        checks["redis"] = f"error: {exc}"

    all_ok = all(v == "ok" for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
