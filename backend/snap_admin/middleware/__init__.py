"""Middleware modules for production-ready features"""
from snap_admin.middleware.monitoring import (
    MonitoringMiddleware,
    record_auth_failure,
    record_authorization_denial,
    record_mfa_event,
)
from snap_admin.middleware.rate_limit import get_rate_limit, limiter

__all__ = [
    "MonitoringMiddleware",
    "record_auth_failure",
    "record_authorization_denial",
    "record_mfa_event",
    "limiter",
    "get_rate_limit",
]
