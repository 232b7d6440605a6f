"""Health check endpoints for load balancers and monitoring."""

from datetime import datetime

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from wms.config import settings
from wms.database import engine
from wms.utils.cache import get_redis

router = APIRouter(tags=["health"])

SERVICE = "WMS Access"


async def _check_database() -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def _check_redis() -> None:
    await (await get_redis()).ping()


@router.get("/health")
async def health_check():
    """Liveness only; touches neither Postgres nor Redis."""
    return {
        "status": "ok",
        "service": SERVICE,
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment,
    }


@router.get("/health/ready")
async def readiness_check():
    """Readiness: the role/warehouse datastore and the context cache.

    With the database down every context is denial-safe; with Redis down
    contexts are rebuilt per request.  Either reports 503 here.
    """
    checks = {"service": "ok"}
    for name, check in (("database", _check_database), ("redis", _check_redis)):
        try:
            await check()
            checks[name] = "ok"
        except Exception as e:
            checks[name] = f"error: {str(e)[:100]}"

    healthy = all(v == "ok" for v in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if healthy else "unhealthy",
            "service": SERVICE,
            "checks": checks,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
