"""Monitoring and observability middleware"""
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

from snap_admin.utils.logger import logger

SLOW_REQUEST_SECONDS = 1.0


# ===== Prometheus Metrics =====

# Request metrics, labelled by route template so ids in paths never become label values
http_requests_total = Counter(
    "snap_admin_http_requests_total",
    "Total HTTP requests",
    ["method", "route", "status"]
)

http_request_duration_seconds = Histogram(
    "snap_admin_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "route"]
)

# Auth metrics
authentication_failures_total = Counter(
    "snap_admin_authentication_failures_total",
    "Rejected logins and sessions by internal reason",
    ["kind"]  # wrong_password, unknown_account, wrong_mfa_code, expired_token, revoked_token, ...
)

authorization_denials_total = Counter(
    "snap_admin_authorization_denials_total",
    "Permission checks that denied access",
    ["entity_type", "action"]
)

mfa_events_total = Counter(
    "snap_admin_mfa_events_total",
    "MFA lifecycle and challenge outcomes",
    ["event"]  # enroll, enabled, disabled, totp_accepted, backup_code_accepted, challenge_rejected, ...
)


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class MonitoringMiddleware(BaseHTTPMiddleware):
    """Request metrics plus an ``X-Request-ID`` on every response"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        request_id = request.headers.get("x-request-id") or f"req_{uuid.uuid4().hex[:16]}"
        request.state.request_id = request_id

        try:
            response = await call_next(request)
        except Exception:
            # Re-raised for the app's exception handlers; only count it here
            http_requests_total.labels(method=request.method, route=_route_template(request), status=500).inc()
            raise

        duration = time.perf_counter() - start_time
        route = _route_template(request)
        http_requests_total.labels(method=request.method, route=route, status=response.status_code).inc()
        http_request_duration_seconds.labels(method=request.method, route=route).observe(duration)

        if duration > SLOW_REQUEST_SECONDS:
            logger.warning(
                f"Slow request: {request.method} {route}",
                extra={
                    "request_id": request_id,
                    "route": route,
                    "duration": round(duration, 3),
                    "status": response.status_code,
                },
            )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"
        return response


def record_auth_failure(kind: str):
    """Record a rejected login or session by internal kind"""
    authentication_failures_total.labels(kind=kind).inc()


def record_authorization_denial(entity_type: str, action: str):
    """Record a denied permission check"""
    authorization_denials_total.labels(entity_type=entity_type, action=action).inc()


def record_mfa_event(event: str):
    """Record an MFA lifecycle or challenge outcome"""
    mfa_events_total.labels(event=event).inc()
