"""Password + second-factor login.

Every way a login can fail past input validation (unknown account, inactive
account, wrong password, wrong TOTP, wrong or spent backup code) raises the
same :class:`AuthenticationError`. Only logs and metrics see the reason.
"""
import re
from dataclasses import dataclass
from typing import Optional

from snap_admin.errors import AuthenticationError, ValidationError
from snap_admin.middleware.monitoring import record_auth_failure
from snap_admin.models.admin import Admin
from snap_admin.services.mfa import MFACoordinator, MFAState, mfa_state
from snap_admin.store import CredentialStore
from snap_admin.utils.auth import burn_password_check, verify_password
from snap_admin.utils.jwt_utils import IssuedToken, SessionIssuer
from snap_admin.utils.logger import logger

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class LoginResult:
    admin: Admin
    session: Optional[IssuedToken] = None

    @property
    def mfa_required(self) -> bool:
        return self.session is None


def _find_admin(store: CredentialStore, identifier: str) -> Optional[Admin]:
    identifier = identifier.strip()
    if not identifier:
        raise ValidationError("Username or email is required")
    if "@" in identifier:
        if not _EMAIL_RE.match(identifier):
            raise ValidationError("Invalid email address")
        return store.find_admin_by_email(identifier)
    return store.find_admin_by_username(identifier)


def _reject(reason: str, admin_id: Optional[str] = None) -> AuthenticationError:
    record_auth_failure(reason)
    logger.info("Login rejected", extra={"admin_id": admin_id, "failure_kind": reason, "action": "login"})
    return AuthenticationError()


def login(
    store: CredentialStore,
    issuer: SessionIssuer,
    identifier: str,
    password: str,
    mfa_code: Optional[str] = None,
) -> LoginResult:
    """Check credentials and, when MFA is enabled, the second factor.

    Returns a result without a session when MFA is enabled and no code was
    supplied; the client then repeats the call with ``mfa_code``.
    """
    admin = _find_admin(store, identifier)
    if admin is None:
        burn_password_check(password)
        raise _reject("unknown_account")

    if not verify_password(password, admin.password_hash):
        raise _reject("wrong_password", admin.admin_id)
    if not admin.is_active:
        raise _reject("account_inactive", admin.admin_id)

    # Raises StateError on a corrupted row: fail closed
    if mfa_state(admin) == MFAState.ENABLED:
        if not mfa_code:
            return LoginResult(admin=admin)
        if not MFACoordinator(store).challenge(admin, mfa_code):
            raise _reject("wrong_mfa_code", admin.admin_id)

    store.record_login(admin)
    session = issuer.issue(admin)
    logger.info("Admin logged in", extra={"admin_id": admin.admin_id, "role": session.claims["role"], "action": "login"})
    return LoginResult(admin=admin, session=session)
