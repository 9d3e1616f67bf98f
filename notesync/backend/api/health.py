"""
Health Check Endpoints.

Provides liveness, readiness, and detailed health checks.

Endpoints:
- /health: Liveness check (process running)
- /health/ready: Readiness check (database answers)
- /health/detailed: Component-by-component status (for debugging)
"""

import asyncio
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError

from notesync.backend.core.database import Database, get_database
from notesync.backend.core.logging import get_logger
from notesync.backend.core.utils import utc_now

router = APIRouter()
logger = get_logger(__name__)

READY_TIMEOUT_SECONDS = 5


async def check_database(database: Database) -> dict[str, Any]:
    """
    Check database connectivity.

    Returns:
        Dict with status, latency, and optional error message
    """
    start = utc_now()
    try:
        async with asyncio.timeout(READY_TIMEOUT_SECONDS):
            await database.ping()
    except (SQLAlchemyError, OSError, TimeoutError) as e:
        logger.warning("Database health check failed", extra={"error": str(e)})
        return {"status": "unhealthy", "error": str(e) or type(e).__name__}

    latency_ms = int((utc_now() - start).total_seconds() * 1000)
    return {"status": "healthy", "latency_ms": latency_ms}


@router.get("/health")
async def health_check() -> dict[str, str]:
    """
    Liveness check.

    Returns 200 if the process is running. No dependency checks.
    """
    return {"status": "healthy"}


@router.get("/health/ready")
async def readiness_check(request: Request) -> dict[str, Any]:
    """
    Readiness check.

    Returns 503 if the database does not answer.
    """
    checks = {"database": await check_database(get_database(request))}

    unhealthy_checks = [
        name for name, check in checks.items()
        if check.get("status") == "unhealthy"
    ]
    if unhealthy_checks:
        logger.warning(
            "Readiness check failed",
            extra={"unhealthy": unhealthy_checks, "checks": checks},
        )
        raise HTTPException(
            status_code=503,
            detail={
                "status": "unhealthy",
                "checks": checks,
                "timestamp": utc_now().isoformat(),
            },
        )

    return {
        "status": "healthy",
        "checks": checks,
        "timestamp": utc_now().isoformat(),
    }


@router.get("/health/detailed")
async def detailed_health_check(request: Request) -> dict[str, Any]:
    """
    Detailed health check.

    Database status plus application identity. Never fails with 503,
    the status field carries the verdict.
    """
    database = get_database(request)
    checks = {"database": await check_database(database)}
    settings = request.app.state.settings

    statuses = [check.get("status") for check in checks.values()]
    return {
        "status": "unhealthy" if "unhealthy" in statuses else "healthy",
        "application": {
            "name": settings.name,
            "env": settings.environment,
            "debug": settings.debug,
            "version": settings.version,
        },
        "checks": checks,
        "database_driver": database.engine.url.drivername,
        "timestamp": utc_now().isoformat(),
    }
