"""Rate limiting for credential-guessing endpoints"""
from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from snap_admin.config import settings


def get_identifier(request: Request) -> str:
    """
    Get identifier for rate limiting

    Priority:
    1. Admin ID (set on request.state once a session token is verified)
    2. IP address (login and other unauthenticated calls); the first
       X-Forwarded-For hop when TRUST_PROXY_HEADERS is on
    """
    admin_id = getattr(request.state, "admin_id", None)
    if admin_id:
        return f"admin:{admin_id}"

    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for", "")
        client_ip = forwarded.split(",")[0].strip()
        if client_ip:
            return client_ip

    return get_remote_address(request)


# Create limiter instance
limiter = Limiter(
    key_func=get_identifier,
    default_limits=settings.RATE_LIMIT_DEFAULT,
    storage_uri=settings.RATE_LIMIT_STORAGE_URI,
    strategy="fixed-window",
    enabled=settings.RATE_LIMIT_ENABLED,
)


# Rate limit configurations for different endpoints
RATE_LIMITS = {
    # Password and second-factor guessing surface
    "login": "10/minute",
    "confirm_mfa": "10/minute",
    "regenerate_backup_codes": "5/minute",

    # Privileged administration
    "admin_write": "50/hour",
}


def get_rate_limit(endpoint: str) -> str:
    """Get rate limit for specific endpoint"""
    return RATE_LIMITS.get(endpoint, settings.RATE_LIMIT_DEFAULT[0])
