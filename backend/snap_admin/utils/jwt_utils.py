"""Session tokens — signing, verification and the per-process issuer"""
import secrets
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from snap_admin.config import settings
from snap_admin.errors import AccountInactive, ExpiredToken, InvalidSignature, MalformedToken, RevokedToken
from snap_admin.models.admin import Admin
from snap_admin.services.authorization import PermissionSet
from snap_admin.store import CredentialStore
from snap_admin.utils.logger import logger

TOKEN_TYPE = "admin"
_REQUIRED_CLAIMS = ("sub", "jti", "iat", "exp", "role", "entity")


@dataclass(frozen=True)
class SessionClaims:
    """Verified payload of a session token.

    ``permissions`` is resolved from the admin's current role during
    verification and reused for every check in the request.
    """

    admin_id: str
    role: str
    operator_entity: str
    issued_at: datetime
    expires_at: datetime
    jti: str
    permissions: PermissionSet = field(default_factory=PermissionSet, compare=False)


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_in: int
    claims: Dict[str, Any]


class SessionIssuer:
    """Mints and verifies signed, time-bounded admin session tokens.

    The signing key is passed in once at construction; nothing here reads
    global configuration, so tests can build issuers with their own keys.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", ttl_seconds: int = 1800):
        if not secret_key:
            raise ValueError("secret_key is required")
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds

    def __repr__(self) -> str:
        return f"SessionIssuer(algorithm={self.algorithm!r}, ttl_seconds={self.ttl_seconds})"

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue(self, admin: Admin, now: Optional[int] = None) -> IssuedToken:
        """Sign a token carrying the admin's identity, role and operator entity."""
        entity = admin.operator_entity
        return self._sign(admin.admin_id, entity.role.name, entity.name, now)

    def refresh(self, claims: SessionClaims, now: Optional[int] = None) -> IssuedToken:
        """Sign a fresh token for an already verified session, with a new jti and a full TTL."""
        return self._sign(claims.admin_id, claims.role, claims.operator_entity, now)

    def _sign(self, admin_id: str, role: str, entity: str, now: Optional[int]) -> IssuedToken:
        if now is None:
            now = int(datetime.now(timezone.utc).timestamp())

        payload: Dict[str, Any] = {
            "sub": admin_id,
            "jti": str(uuid.uuid4()),
            "iat": now,
            "exp": now + self.ttl_seconds,
            "type": TOKEN_TYPE,
            "role": role,
            "entity": entity,
        }
        token = jwt.encode(payload, self._secret_key, algorithm=self.algorithm)
        return IssuedToken(token=token, expires_in=self.ttl_seconds, claims=payload)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify(self, token: str, store: CredentialStore) -> SessionClaims:
        """Verify a token and re-check the admin against the store.

        Checks, in order:
        1. Token is a well-formed JWT          -> MalformedToken
        2. Signature matches our key           -> InvalidSignature
        3. Token not expired                   -> ExpiredToken
        4. Required claims present             -> MalformedToken
        5. jti not revoked (logout)            -> RevokedToken
        6. Admin still exists and is active    -> AccountInactive
        """
        try:
            jwt.get_unverified_header(token)
        except JWTError as exc:
            raise MalformedToken() from exc

        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise ExpiredToken() from exc
        except JWTError as exc:
            raise InvalidSignature() from exc

        if payload.get("type") != TOKEN_TYPE or any(not payload.get(claim) for claim in _REQUIRED_CLAIMS):
            raise MalformedToken()

        if store.is_token_revoked(payload["jti"]):
            raise RevokedToken()

        admin = store.find_admin_by_id(payload["sub"])
        if admin is None or not admin.is_active:
            raise AccountInactive()

        role = admin.operator_entity.role if admin.operator_entity else None
        return SessionClaims(
            admin_id=admin.admin_id,
            role=payload["role"],
            operator_entity=payload["entity"],
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            jti=payload["jti"],
            permissions=PermissionSet.for_role(role),
        )


@lru_cache(maxsize=1)
def get_session_issuer() -> SessionIssuer:
    """Return the process-wide issuer, built once from settings."""
    secret_key = settings.JWT_SECRET_KEY
    if not secret_key:
        if settings.is_production:
            raise RuntimeError("JWT_SECRET_KEY must be set when ENVIRONMENT=production")
        secret_key = secrets.token_urlsafe(64)
        logger.warning(
            "JWT_SECRET_KEY not set, generated a random signing key for this process. "
            "All sessions will be invalidated on restart. Set JWT_SECRET_KEY in backend/.env to persist."
        )
    return SessionIssuer(
        secret_key=secret_key,
        algorithm=settings.JWT_ALGORITHM,
        ttl_seconds=settings.JWT_EXPIRE_SECONDS,
    )
