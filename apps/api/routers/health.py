"""
Health, readiness and liveness checks.
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
import redis.asyncio as redis

from config import settings
from database import async_session_maker
from services.file_cleanup import get_cleanup_queue_status

router = APIRouter()

CLOUDINARY_KEYS = ("CLOUDINARY_CLOUD_NAME", "CLOUDINARY_API_KEY", "CLOUDINARY_API_SECRET")


def _missing_cloudinary_keys():
    return [key for key in CLOUDINARY_KEYS if not (getattr(settings, key) or "").strip()]


@router.get("/health")
async def health_check():
    """
    Report database and Redis reachability, object store configuration and
    the file cleanup backlog. Abandoned cleanup jobs mark the service degraded
    because they need an operator.
    """
    report = {
        "status": "healthy",
        "database": "unknown",
        "redis": "unknown",
        "cloudinary": "missing" if _missing_cloudinary_keys() else "configured",
        "cleanup_queue": None,
    }

    try:
        async with async_session_maker() as db:
            await db.execute(text("SELECT 1"))
            report["database"] = "up"
            queue = await get_cleanup_queue_status(db)
        report["cleanup_queue"] = {"pending": queue["pending"], "abandoned": queue["abandoned"]}
        if queue["abandoned"]:
            report["status"] = "degraded"
    except Exception as e:
        report["database"] = f"down: {type(e).__name__}"
        report["status"] = "degraded"

    # Redis only carries immediate cleanup dispatch and rate limits.
    r = redis.from_url(settings.REDIS_URL)
    try:
        await r.ping()
        report["redis"] = "up"
    except Exception as e:
        report["redis"] = f"down: {type(e).__name__}"
        report["status"] = "degraded"
    finally:
        await r.aclose()

    return report


@router.get("/health/ready")
async def readiness_check():
    """Ready once the object store credentials needed by cleanup are present."""
    missing = _missing_cloudinary_keys()
    if missing:
        return JSONResponse(status_code=503, content={"ready": False, "missing": missing})
    return {"ready": True}


@router.get("/health/live")
async def liveness_check():
    return {"alive": True}
