"""FastAPI application entry point"""
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import InterfaceError, OperationalError
from prometheus_fastapi_instrumentator import Instrumentator

from snap_admin.api import admin, auth, health, roles
from snap_admin.config import settings
from snap_admin.errors import SnapAdminError, StateError, StorageUnavailable
from snap_admin.middleware.rate_limit import limiter
from snap_admin.utils.jwt_utils import get_session_issuer
from snap_admin.utils.logger import logger, setup_logging

setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

VERSION = "0.1.0"
RETRY_AFTER_SECONDS = "5"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Build the issuer up front so a missing key fails at boot, not on first login
    get_session_issuer()
    logger.info("SNAP admin backend starting up", extra={
        "version": VERSION,
        "environment": settings.ENVIRONMENT,
        "rate_limiting": settings.RATE_LIMIT_ENABLED,
        "metrics": settings.METRICS_ENABLED,
    })
    yield
    logger.info("SNAP admin backend shutting down")


app = FastAPI(
    title="SNAP Admin",
    description="Authentication, MFA and role-based authorization for the SNAP marketplace admin dashboard",
    version=VERSION,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    lifespan=lifespan,
)

# ===== Middleware =====

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Token", "X-Request-ID"],
)

if settings.METRICS_ENABLED:
    from snap_admin.middleware.monitoring import MonitoringMiddleware
    app.add_middleware(MonitoringMiddleware)

    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        should_respect_env_var=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=[settings.METRICS_PATH, "/health.*"],
        inprogress_name="snap_admin_requests_inprogress",
        inprogress_labels=True,
    ).instrument(app).expose(app, endpoint=settings.METRICS_PATH, include_in_schema=False)

# The limiter checks RATE_LIMIT_ENABLED itself, so it is always attached
app.state.limiter = limiter

# ===== Routes =====

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(roles.router)
app.include_router(admin.router)


@app.get("/")
def root():
    return {
        "service": "SNAP Admin",
        "version": VERSION,
        "status": "operational",
        "health": "/health",
        "metrics": settings.METRICS_PATH if settings.METRICS_ENABLED else None,
    }


# ===== Error Handlers =====

def _request_context(request: Request) -> Dict[str, Optional[str]]:
    return {
        "path": request.url.path,
        "method": request.method,
        "request_id": getattr(request.state, "request_id", None),
    }


def _error_response(status_code: int, code: str, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": code, "message": message},
        headers=headers,
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning("Rate limit exceeded", extra={
        **_request_context(request),
        "limit": str(exc.detail),
    })
    return _error_response(
        429,
        "rate_limit_exceeded",
        "Too many requests. Please try again later.",
        headers={"Retry-After": "60"},
    )


@app.exception_handler(SnapAdminError)
async def snap_admin_error_handler(request: Request, exc: SnapAdminError):
    """Domain errors carry their own status; only ``public_message`` reaches the caller."""
    headers = None
    if isinstance(exc, StateError):
        logger.error(f"Inconsistent state: {exc.message}", extra=_request_context(request), exc_info=exc)
    elif isinstance(exc, StorageUnavailable):
        headers = {"Retry-After": RETRY_AFTER_SECONDS}
    elif exc.status_code == 401:
        headers = {"WWW-Authenticate": "Bearer"}

    return _error_response(exc.status_code, exc.code, exc.public_message, headers=headers)


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
async def database_unavailable_handler(request: Request, exc: Exception):
    """Driver failures raised outside the credential store"""
    logger.error("Database unavailable", extra=_request_context(request), exc_info=exc)
    return _error_response(
        503,
        StorageUnavailable.code,
        StorageUnavailable().public_message,
        headers={"Retry-After": RETRY_AFTER_SECONDS},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {type(exc).__name__}", extra=_request_context(request), exc_info=exc)
    return _error_response(
        500,
        "internal_server_error",
        "An unexpected error occurred. Please contact support.",
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("snap_admin.main:app", host=settings.HOST, port=settings.PORT)
