"""Login, session and MFA endpoints"""
from datetime import timezone

from fastapi import APIRouter, Depends, Request, Response

from snap_admin.api.deps import REFRESHED_TOKEN_HEADER, get_current_claims, get_issuer, get_store
from snap_admin.errors import AuthenticationError, StateError
from snap_admin.middleware.rate_limit import get_rate_limit, limiter
from snap_admin.models.admin import Admin
from snap_admin.schemas.auth import (
    AdminProfile,
    BackupCodesResponse,
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    MFACodeRequest,
    MFAEnrollResponse,
    MFAStatusResponse,
)
from snap_admin.services import login as login_service
from snap_admin.services.authorization import PermissionSet
from snap_admin.services.mfa import MFACoordinator, MFAState, mfa_state
from snap_admin.store import CredentialStore
from snap_admin.utils.auth import hash_password, verify_password
from snap_admin.utils.jwt_utils import SessionClaims, SessionIssuer
from snap_admin.utils.logger import logger

router = APIRouter(prefix="/auth", tags=["authentication"])


def _profile(admin: Admin, permissions: PermissionSet) -> AdminProfile:
    entity = admin.operator_entity
    return AdminProfile(
        admin_id=admin.admin_id,
        email=admin.email,
        username=admin.username,
        name=admin.name,
        role=entity.role.name,
        operator_entity=entity.name,
        mfa_enabled=mfa_state(admin) == MFAState.ENABLED,
        last_login=admin.last_login,
        permissions=permissions.to_matrix(),
    )


def _current_admin(claims: SessionClaims, store: CredentialStore) -> Admin:
    admin = store.find_admin_by_id(claims.admin_id)
    if admin is None:
        raise StateError(f"Admin {claims.admin_id} missing after session verification")
    return admin


# ---------------------------------------------------------------------------
# POST /auth/login
# ---------------------------------------------------------------------------

@router.post("/login", response_model=LoginResponse)
@limiter.limit(get_rate_limit("login"))
def login(
    request: Request,
    data: LoginRequest,
    store: CredentialStore = Depends(get_store),
    issuer: SessionIssuer = Depends(get_issuer),
) -> LoginResponse:
    """Exchange credentials (and, when MFA is on, a second factor) for a session token.

    When MFA is enabled and no ``mfa_code`` is given the response is
    ``{"mfa_required": true}``; repeat the call with the 6-digit code or a
    backup code. Backup codes are consumed on use.

    Wrong credentials and wrong MFA codes both return the same 401.
    """
    result = login_service.login(store, issuer, data.username, data.password, data.mfa_code)
    if result.mfa_required:
        return LoginResponse(mfa_required=True)

    admin = result.admin
    return LoginResponse(
        access_token=result.session.token,
        expires_in=result.session.expires_in,
        admin=_profile(admin, PermissionSet.for_role(admin.operator_entity.role)),
    )


# ---------------------------------------------------------------------------
# MFA enrollment
# ---------------------------------------------------------------------------

@router.post("/enroll-mfa", response_model=MFAEnrollResponse)
def enroll_mfa(
    claims: SessionClaims = Depends(get_current_claims),
    store: CredentialStore = Depends(get_store),
) -> MFAEnrollResponse:
    """Start MFA enrollment for the calling admin.

    Returns the TOTP secret, an ``otpauth://`` URI with its QR code, and the
    backup codes. They are shown **once**; MFA is not active until
    ``POST /auth/confirm-mfa`` succeeds.
    """
    enrollment = MFACoordinator(store).enroll(claims.admin_id)
    return MFAEnrollResponse(
        secret=enrollment.secret,
        provisioning_uri=enrollment.provisioning_uri,
        qr_code=enrollment.qr_code,
        backup_codes=enrollment.backup_codes,
    )


@router.post("/confirm-mfa", response_model=MFAStatusResponse)
@limiter.limit(get_rate_limit("confirm_mfa"))
def confirm_mfa(
    request: Request,
    data: MFACodeRequest,
    claims: SessionClaims = Depends(get_current_claims),
    store: CredentialStore = Depends(get_store),
) -> MFAStatusResponse:
    """Activate MFA with a code from the freshly enrolled authenticator."""
    enabled = MFACoordinator(store).confirm(claims.admin_id, data.code)
    return MFAStatusResponse(enabled=enabled)


@router.post("/disable-mfa", response_model=MFAStatusResponse)
def disable_mfa(
    claims: SessionClaims = Depends(get_current_claims),
    store: CredentialStore = Depends(get_store),
) -> MFAStatusResponse:
    """Turn MFA off, discarding the secret and every backup code."""
    MFACoordinator(store).disable(claims.admin_id)
    return MFAStatusResponse(enabled=False)


@router.get("/mfa")
def mfa_status(
    claims: SessionClaims = Depends(get_current_claims),
    store: CredentialStore = Depends(get_store),
) -> dict:
    """MFA state of the calling admin and how many backup codes are left."""
    return MFACoordinator(store).status(_current_admin(claims, store))


@router.post("/backup-codes/regenerate", response_model=BackupCodesResponse)
@limiter.limit(get_rate_limit("regenerate_backup_codes"))
def regenerate_backup_codes(
    request: Request,
    data: MFACodeRequest,
    claims: SessionClaims = Depends(get_current_claims),
    store: CredentialStore = Depends(get_store),
) -> BackupCodesResponse:
    """Replace all backup codes. Requires a current TOTP code."""
    codes = MFACoordinator(store).regenerate_backup_codes(claims.admin_id, data.code)
    return BackupCodesResponse(backup_codes=codes)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

@router.get("/me", response_model=AdminProfile)
def me(
    claims: SessionClaims = Depends(get_current_claims),
    store: CredentialStore = Depends(get_store),
) -> AdminProfile:
    """Profile of the calling admin with the permission matrix of its role."""
    return _profile(_current_admin(claims, store), claims.permissions)


@router.post("/logout", response_model=LogoutResponse)
def logout(
    response: Response,
    claims: SessionClaims = Depends(get_current_claims),
    store: CredentialStore = Depends(get_store),
) -> LogoutResponse:
    """Revoke the presented token. Later requests with it return 401."""
    if REFRESHED_TOKEN_HEADER in response.headers:
        del response.headers[REFRESHED_TOKEN_HEADER]
    expires_at = claims.expires_at.astimezone(timezone.utc).replace(tzinfo=None)
    store.revoke_token(claims.jti, claims.admin_id, expires_at)
    logger.info("Session revoked", extra={"admin_id": claims.admin_id, "action": "logout"})
    return LogoutResponse(revoked=True)


@router.put("/change-password", status_code=204)
def change_password(
    data: ChangePasswordRequest,
    claims: SessionClaims = Depends(get_current_claims),
    store: CredentialStore = Depends(get_store),
) -> None:
    """Change the calling admin's password after re-checking the current one."""
    admin = _current_admin(claims, store)
    if not verify_password(data.current_password, admin.password_hash):
        raise AuthenticationError()

    store.update_password(admin, hash_password(data.new_password))
    logger.info("Password changed", extra={"admin_id": admin.admin_id, "action": "change_password"})
    return None
