"""Error taxonomy for the authentication and authorization core.

Expected failures (validation, authentication, authorization) are handled at
the HTTP boundary and returned as structured denials. ``StateError`` and
``StorageUnavailable`` are unexpected: they are logged with context and
surfaced as opaque failures.

Every :class:`SessionError` subclass maps to the same 401 body; the concrete
class is only used for logging and metrics.
"""
from typing import Any, Optional

from fastapi import status


class SnapAdminError(Exception):
    code: str = "APP_ERROR"
    message: str = "Application error"
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: Optional[str] = None, *, details: Any = None):
        if message is not None:
            self.message = message
        self.details = details
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        """Message safe to return to the caller"""
        return self.message


class ValidationError(SnapAdminError):
    code = "validation_error"
    message = "Invalid input"
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(SnapAdminError):
    """Bad credentials or bad MFA code. Always reported identically."""

    code = "unauthorized"
    message = "Invalid credentials"
    status_code = status.HTTP_401_UNAUTHORIZED

    @property
    def public_message(self) -> str:
        return AuthenticationError.message


class SessionError(AuthenticationError):
    kind: str = "session_error"
    message = "Invalid or expired token"

    @property
    def public_message(self) -> str:
        return SessionError.message


class MissingToken(SessionError):
    kind = "missing_token"


class MalformedToken(SessionError):
    kind = "malformed_token"


class InvalidSignature(SessionError):
    kind = "invalid_signature"


class ExpiredToken(SessionError):
    kind = "expired_token"


class RevokedToken(SessionError):
    kind = "revoked_token"


class AccountInactive(SessionError):
    kind = "account_inactive"


class AuthorizationError(SnapAdminError):
    code = "forbidden"
    message = "Insufficient permissions"
    status_code = status.HTTP_403_FORBIDDEN

    @property
    def public_message(self) -> str:
        return AuthorizationError.message


class NotFoundError(SnapAdminError):
    code = "not_found"
    message = "Resource not found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(SnapAdminError):
    code = "conflict"
    message = "Resource was modified concurrently"
    status_code = status.HTTP_409_CONFLICT


class StateError(SnapAdminError):
    """Persisted MFA state violates its invariants (data corruption)."""

    code = "internal_server_error"
    message = "Inconsistent account state"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    @property
    def public_message(self) -> str:
        return "An unexpected error occurred. Please contact support."


class StorageUnavailable(SnapAdminError):
    code = "service_unavailable"
    message = "Credential store unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    @property
    def public_message(self) -> str:
        return "Service temporarily unavailable. Please retry."
