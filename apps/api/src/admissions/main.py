"""
Super 40 Admissions API - Main Application Entry Point

This module initializes and configures the FastAPI application including:
- Database and Redis connections
- CORS middleware
- API routing
- Health check endpoints
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from admissions.api import api_router
from admissions.core.config import settings
from admissions.core.database import async_session_maker, close_db, init_db
from admissions.core.redis import close_redis, init_redis, is_redis_available
from admissions.modules.applications import drain_notifications

NOTIFICATION_DRAIN_TIMEOUT_SECONDS = 10


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events including:
    - Redis connection
    - Database connection
    - Waiting for in-flight notification emails
    """
    # Startup
    print(f"Starting Super 40 Admissions API in {settings.python_env} mode...")

    if settings.is_production and settings.uses_default_secret_key:
        print("[FAIL] SECRET_KEY is still the placeholder value")
        raise RuntimeError("SECRET_KEY must be set in production")

    # Initialize Redis
    try:
        await init_redis()
        print("[OK] Redis connected")
    except Exception as e:
        print(f"[FAIL] Redis connection failed: {e}")
        if settings.is_production:
            raise

    # Initialize Database
    try:
        await init_db()
        print("[OK] Database connected")
    except Exception as e:
        print(f"[FAIL] Database connection failed: {e}")
        if settings.is_production:
            raise

    yield  # Application runs here

    # Shutdown
    print("Shutting down Super 40 Admissions API...")

    # Let queued confirmation/decision emails finish first
    await drain_notifications(timeout=NOTIFICATION_DRAIN_TIMEOUT_SECONDS)
    print("[OK] Notifications drained")

    await close_redis()
    await close_db()
    print("[OK] Cleanup complete")


app = FastAPI(
    title="Super 40 Admissions API",
    description="Admission intake, review and status verification for the Ajmal Super 40 test",
    version="0.1.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/api/v1")

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint - API welcome message."""
    return {
        "message": "Welcome to the Super 40 Admissions API",
        "status": "running",
        "environment": settings.python_env,
    }


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint for container orchestration."""
    return {"status": "healthy"}


@app.get("/ready", tags=["Health"])
async def readiness_check():
    """Readiness check: the database must answer; Redis is reported but optional."""
    try:
        async with async_session_maker() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "database": "error", "message": str(e)},
        )
    return {
        "status": "ready",
        "database": "connected",
        "redis": "connected" if is_redis_available() else "unavailable",
    }
