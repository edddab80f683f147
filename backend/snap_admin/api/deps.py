"""API dependencies for authentication and authorization.

Every protected endpoint takes ``Authorization: Bearer <session token>``.
:func:`get_current_claims` verifies it (signature, expiry, revocation, live
admin lookup) and resolves the role's permission set once per request.

Permission gates
----------------
Business endpoints declare what they need with one of the factories::

    @router.get("/orders")
    def list_orders(claims: SessionClaims = Depends(require_permission(EntityType.ORDERS, PermissionAction.VIEW))):
        ...

Anything the role does not explicitly grant is denied (403).
"""
from typing import Callable, Optional, Sequence

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from snap_admin.config import settings
from snap_admin.database import get_db
from snap_admin.errors import AuthorizationError, MissingToken, SessionError
from snap_admin.middleware.monitoring import record_auth_failure, record_authorization_denial
from snap_admin.models.enums import EntityType, PermissionAction
from snap_admin.services import authorization
from snap_admin.services.authorization import PermissionKey
from snap_admin.store import CredentialStore
from snap_admin.utils.jwt_utils import SessionClaims, SessionIssuer, get_session_issuer
from snap_admin.utils.logger import logger

_bearer_scheme = HTTPBearer(auto_error=False)

REFRESHED_TOKEN_HEADER = "X-Token"


# ---------------------------------------------------------------------------
# Store and issuer
# ---------------------------------------------------------------------------

def get_store(db: Session = Depends(get_db)) -> CredentialStore:
    return CredentialStore(db)


def get_issuer() -> SessionIssuer:
    return get_session_issuer()


# ---------------------------------------------------------------------------
# Verified session
# ---------------------------------------------------------------------------

def get_current_claims(
    request: Request,
    response: Response,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
    store: CredentialStore = Depends(get_store),
    issuer: SessionIssuer = Depends(get_issuer),
) -> SessionClaims:
    """Verify the bearer token and return its claims. Raises 401 on any failure.

    With SESSION_SLIDING_REFRESH the response also carries a renewed token
    in ``X-Token``, so an admin who keeps working is not logged out mid-session.
    """
    try:
        if not credentials or not credentials.credentials:
            raise MissingToken()
        claims = issuer.verify(credentials.credentials, store)
    except SessionError as exc:
        record_auth_failure(exc.kind)
        logger.info(
            "Session rejected",
            extra={"failure_kind": exc.kind, "path": request.url.path},
        )
        raise

    request.state.admin_id = claims.admin_id
    if settings.SESSION_SLIDING_REFRESH:
        response.headers[REFRESHED_TOKEN_HEADER] = issuer.refresh(claims).token
    return claims


# ---------------------------------------------------------------------------
# Permission gate factories
# ---------------------------------------------------------------------------

def _deny(claims: SessionClaims, required: Sequence[PermissionKey], joiner: str) -> AuthorizationError:
    for entity_type, action in required:
        record_authorization_denial(entity_type.value, action.value)
    logger.info(
        f"Permission denied: requires {authorization.describe(required, joiner)}",
        extra={"admin_id": claims.admin_id, "role": claims.role, "action": "authorize"},
    )
    return AuthorizationError()


def require_permission(entity_type: EntityType, action: PermissionAction) -> Callable:
    """Return a FastAPI dependency that requires one (entity type, action) grant.

    Returns:
        A FastAPI-injectable callable that resolves to :class:`SessionClaims` or raises 403.
    """

    def _permission_dep(claims: SessionClaims = Depends(get_current_claims)) -> SessionClaims:
        if not authorization.has_permission(claims, entity_type, action):
            raise _deny(claims, [(entity_type, action)], "and")
        return claims

    # Give FastAPI a unique name so it doesn't collapse distinct dependencies
    _permission_dep.__name__ = f"require_{entity_type.value.lower()}_{action.value.lower()}"
    return _permission_dep


def require_any_permission(required: Sequence[PermissionKey]) -> Callable:
    """Dependency passing if at least one of ``required`` is granted."""
    required = list(required)

    def _any_dep(claims: SessionClaims = Depends(get_current_claims)) -> SessionClaims:
        if not authorization.has_any(claims, required):
            raise _deny(claims, required, "or")
        return claims

    return _any_dep


def require_all_permissions(required: Sequence[PermissionKey]) -> Callable:
    """Dependency passing only if every pair in ``required`` is granted."""
    required = list(required)

    def _all_dep(claims: SessionClaims = Depends(get_current_claims)) -> SessionClaims:
        if not authorization.has_all(claims, required):
            raise _deny(claims, required, "and")
        return claims

    return _all_dep
