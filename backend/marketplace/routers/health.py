import time
from datetime import datetime, timezone

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from marketplace.models_sqlalchemy import engine
from marketplace.utils.logger import logger

router = APIRouter(prefix="/api/health", tags=["health"])

_STARTED_AT = time.monotonic()


def _database_ok() -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {type(e).__name__}: {e}")
        return False


@router.get("")
async def health():
    started = time.monotonic()
    database = "healthy" if _database_ok() else "unhealthy"
    return {
        "status": "ok" if database == "healthy" else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _STARTED_AT, 3),
        "response_time_ms": round((time.monotonic() - started) * 1000, 2),
        "checks": {"database": database},
    }


@router.get("/live")
async def live():
    return {"status": "ok"}


@router.get("/ready")
async def ready():
    return {"status": "ok" if _database_ok() else "not ready"}
