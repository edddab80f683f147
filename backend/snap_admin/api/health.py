"""Health check endpoints"""
import time
from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import case, func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from snap_admin.config import settings
from snap_admin.database import get_db
from snap_admin.models.admin import Admin
from snap_admin.models.role import Role
from snap_admin.utils.logger import logger

router = APIRouter(prefix="/health", tags=["health"])

SERVICE_NAME = "SNAP Admin"
SERVICE_VERSION = "0.1.0"
MAX_DATABASE_LATENCY_MS = 1000

STARTED_AT = time.monotonic()


def _uptime() -> float:
    return round(time.monotonic() - STARTED_AT, 2)


def _now() -> str:
    return datetime.utcnow().isoformat()


@router.get("")
def health_check():
    """Process is up. Does not touch the database."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "timestamp": _now(),
    }


@router.get("/ready")
def readiness_check(db: Session = Depends(get_db)):
    """
    Readiness probe

    200 when the credential store answers within MAX_DATABASE_LATENCY_MS,
    503 otherwise. Logins cannot succeed while this is failing.
    """
    started = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.error("Readiness check failed", extra={"action": "health_ready"}, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "checks": {"database": False, "database_latency_ms": None}},
        )

    latency_ms = round((time.perf_counter() - started) * 1000, 2)
    checks = {"database": True, "database_latency_ms": latency_ms}
    if latency_ms > MAX_DATABASE_LATENCY_MS:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "degraded", "checks": checks, "message": "Database latency is high"},
        )

    return {"status": "ready", "checks": checks, "timestamp": _now()}


@router.get("/live")
def liveness_check():
    return {"status": "alive", "uptime_seconds": _uptime(), "timestamp": _now()}


@router.get("/stats")
def health_stats(db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Admin and role counts plus uptime. Counts only, no identities."""
    total, active, mfa_enabled = db.query(
        func.count(Admin.id),
        func.coalesce(func.sum(case((Admin.is_active.is_(True), 1), else_=0)), 0),
        func.coalesce(func.sum(case((Admin.mfa_enabled.is_(True), 1), else_=0)), 0),
    ).one()

    return {
        "status": "healthy",
        "admins": {"total": total, "active": int(active), "mfa_enabled": int(mfa_enabled)},
        "roles": db.query(func.count(Role.id)).scalar(),
        "system": {
            "uptime_seconds": _uptime(),
            "environment": settings.ENVIRONMENT,
            "production": settings.is_production,
        },
        "timestamp": _now(),
    }
