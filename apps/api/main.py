"""
Assignly - FastAPI Backend
Main application entry point with order, cleanup and admin API routing.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import cloudinary_configured, settings, validate_security_settings
from database import engine, Base
import models  # noqa: F401
from routers import (
    health,
    auth,
    orders,
    cleanup,
    admin,
    referrals,
)
from services.errors import GENERIC_ERROR_MESSAGE
from services.fraud_detection import run_fraud_detection
from services.object_store import build_object_store
from services.order_status import run_order_promotion

logger = logging.getLogger(__name__)


async def _periodic_order_promotion() -> None:
    interval_minutes = max(int(settings.ORDER_PROMOTION_INTERVAL_MINUTES), 0)
    if interval_minutes <= 0:
        return
    while True:
        await asyncio.sleep(interval_minutes * 60)
        try:
            updated = await run_order_promotion()
            if updated:
                print(f"✍️ Order promotion tick: moved {updated} pending orders to writing")
        except Exception as exc:
            print(f"⚠️ Order promotion tick failed: {exc}")


async def _periodic_fraud_detection() -> None:
    interval_minutes = max(int(settings.FRAUD_DETECTION_INTERVAL_MINUTES), 0)
    if interval_minutes <= 0:
        return
    while True:
        await asyncio.sleep(interval_minutes * 60)
        try:
            result = await run_fraud_detection()
            if result["alertId"]:
                print(
                    f"🔍 Fraud scan: flagged {result['suspiciousIps']} IPs "
                    f"and {result['suspiciousUsers']} users"
                )
        except Exception as exc:
            print(f"⚠️ Fraud scan tick failed: {exc}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    print("🚀 Starting Assignly API...")
    validate_security_settings()
    if settings.AUTO_CREATE_DB_SCHEMA:
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            print("🗄️ Database schema verified.")
        except Exception as e:
            print(f"⚠️ Database bootstrap skipped: {e}")
    if not cloudinary_configured():
        print("⚠️ Cloudinary credentials missing; file cleanup will fail until configured.")
    if getattr(app.state, "object_store", None) is None:
        try:
            app.state.object_store = build_object_store()
        except Exception as exc:
            print(f"⚠️ Object store unavailable, cleanup endpoints will retry lazily: {exc}")
    promotion_task = None
    if int(settings.ORDER_PROMOTION_INTERVAL_MINUTES) > 0:
        promotion_task = asyncio.create_task(_periodic_order_promotion())
        print(
            "📅 Order promotion loop enabled "
            f"(every {int(settings.ORDER_PROMOTION_INTERVAL_MINUTES)} min, "
            f"after {int(settings.ORDER_PROMOTION_AGE_MINUTES)} min pending)."
        )
    fraud_task = None
    if int(settings.FRAUD_DETECTION_INTERVAL_MINUTES) > 0:
        fraud_task = asyncio.create_task(_periodic_fraud_detection())
        print(f"📅 Fraud scan loop enabled (every {int(settings.FRAUD_DETECTION_INTERVAL_MINUTES)} min).")
    yield
    # Shutdown
    for task in (promotion_task, fraud_task):
        if task is None:
            continue
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    redis_client = getattr(app.state, "redis", None)
    if redis_client is not None:
        await redis_client.aclose()
    print("👋 Shutting down API...")


app = FastAPI(
    title="Assignly API",
    description="Credit-metered assignment ordering with deferred file cleanup",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid input parameters"},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": GENERIC_ERROR_MESSAGE},
    )


# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(auth.router, prefix="/api", tags=["Authentication"])
app.include_router(orders.router, prefix="/api", tags=["Orders"])
app.include_router(cleanup.router, prefix="/api", tags=["Cleanup"])
app.include_router(admin.router, prefix="/api", tags=["Admin"])
app.include_router(referrals.router, prefix="/api/referrals", tags=["Referrals"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Assignly API",
        "version": "0.1.0",
        "status": "running"
    }
