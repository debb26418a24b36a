"""Liveness, readiness and version endpoints."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from codesrock.config import get_settings
from codesrock.dependencies import get_db, get_redis_dep

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, object]:
    """Liveness check: 200 while the process is up."""
    return {"success": True, "status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_db),  # noqa: B008
    redis: object = Depends(get_redis_dep),  # noqa: B008
) -> JSONResponse:
    """Readiness check: 503 unless the database answers. Redis is optional."""
    checks: dict[str, str] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as exc:
        checks["database"] = f"error: {exc}"

    if redis is None:
        checks["redis"] = "disabled"
    else:
        try:
            await redis.ping()  # type: ignore[attr-defined]
            checks["redis"] = "ok"
        except Exception as exc:
            checks["redis"] = f"error: {exc}"

    ready = checks["database"] == "ok"
    degraded = checks["redis"] not in ("ok", "disabled")
    status = "ready" if ready and not degraded else ("degraded" if ready else "unavailable")
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"success": ready, "status": status, "checks": checks},
    )


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
