"""Health check endpoint: server up, database and Redis reachable."""

from fastapi import APIRouter
from sqlalchemy import text

from budgetmanager import __version__
from budgetmanager.cache import get_redis
from budgetmanager.db.engine import engine

router = APIRouter()


@router.get("/health")
async def health_check():
    checks = {"server": "ok", "version": __version__}

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    try:
        await get_redis().ping()
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"unavailable: {e}"

    # Redis only backs rate limiting; without it the API still serves.
    status = "healthy" if checks["database"] == "ok" else "degraded"
    return {"status": status, **checks}
