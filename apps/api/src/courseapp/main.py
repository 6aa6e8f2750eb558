"""
Course Events API - Main Application Entry Point

This module initializes and configures the FastAPI application including:
- Logging
- Redis (shared rate limit counters), database and object storage
- Background job scheduler
- CORS middleware
- Error handlers
- API routing
- Health check endpoints
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from courseapp.api import api_router
from courseapp.core.auth import AdminPrincipal, get_current_admin
from courseapp.core.config import settings
from courseapp.core.database import close_db, init_db
from courseapp.core.errors import NotFoundError, register_exception_handlers
from courseapp.core.notifications import get_dispatcher
from courseapp.core.rate_limit import RedisCounterStore, configure_rate_limiter, rate_limit
from courseapp.core.redis import close_redis, init_redis
from courseapp.core.scheduler import list_registered_jobs, start_scheduler, stop_scheduler, trigger_job_manually
from courseapp.core.security import get_identity_provider
from courseapp.core.storage import get_storage
from courseapp.modules.submissions import register_submission_jobs

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events including:
    - Identity provider configuration check
    - Redis connection (redis rate limit backend only)
    - Database connection
    - Object storage bucket
    - Background job scheduler
    - Pending notification drain
    """
    configure_logging()
    print(f"Starting Course Events API in {settings.python_env} mode...")

    if not get_identity_provider().is_configured:
        print("[FAIL] No identity provider configured (AUTH_JWKS_URL or AUTH_JWT_SECRET)")
        if settings.is_production:
            raise RuntimeError("Identity provider is not configured")

    # Shared rate limit counters
    if settings.rate_limit_backend == "redis":
        try:
            client = await init_redis()
            configure_rate_limiter(RedisCounterStore(client))
            print("[OK] Redis connected, rate limits shared")
        except Exception as e:
            print(f"[FAIL] Redis connection failed, using in-memory rate limits: {e}")
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

    # Object storage
    try:
        await get_storage().ensure_bucket()
        print(f"[OK] Storage bucket ready: {settings.storage_bucket}")
    except Exception as e:
        print(f"[FAIL] Storage check failed: {e}")
        if settings.is_production:
            raise

    # Background jobs
    try:
        register_submission_jobs()
        await start_scheduler()
        print("[OK] Background scheduler started")
    except Exception as e:
        print(f"[FAIL] Background scheduler failed to start: {e}")
        if settings.is_production:
            raise

    yield  # Application runs here

    # Shutdown
    print("Shutting down Course Events API...")

    await stop_scheduler()
    print("[OK] Background scheduler stopped")

    await get_dispatcher().drain()
    print("[OK] Pending notifications settled")

    await close_redis()
    await close_db()
    print("[OK] Cleanup complete")


app = FastAPI(
    title="Course Events API",
    description="Course events, applicant submissions and their administration",
    version="0.1.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

register_exception_handlers(app)

app.include_router(api_router, prefix="/api")

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[
        "Content-Disposition",
        "Retry-After",
        "RateLimit-Limit",
        "RateLimit-Remaining",
        "RateLimit-Reset",
    ],
)


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint - API welcome message."""
    return {
        "message": "Welcome to the Course Events API",
        "status": "running",
        "environment": settings.python_env,
    }


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint. Never authenticated or rate limited."""
    return {"status": "ok"}


# ============================================
# Background Job Endpoints
# ============================================
# Jobs run hourly on their own; these let an admin inspect them or run one now.


@app.get(
    "/api/admin/jobs",
    tags=["Admin - Jobs"],
    dependencies=[Depends(rate_limit("api"))],
)
async def list_jobs(admin: AdminPrincipal = Depends(get_current_admin)):
    """List registered background jobs and their next run time."""
    return {"jobs": list_registered_jobs()}


@app.post(
    "/api/admin/jobs/{job_id}/trigger",
    tags=["Admin - Jobs"],
    dependencies=[Depends(rate_limit("api")), Depends(rate_limit("admin"))],
)
async def trigger_job(job_id: str, admin: AdminPrincipal = Depends(get_current_admin)):
    """Run a background job immediately, bypassing its schedule."""
    try:
        result = await trigger_job_manually(job_id)
    except ValueError as e:
        raise NotFoundError(str(e)) from e

    logger.info(f"Admin {admin.uid} triggered job {job_id}: {result['status']}")
    return result
