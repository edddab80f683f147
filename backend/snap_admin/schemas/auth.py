"""Login, session and MFA schemas"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from snap_admin.config import settings


class LoginRequest(BaseModel):
    username: str = Field(..., description="Username or email")
    password: str = Field(..., min_length=1, max_length=72)
    mfa_code: Optional[str] = Field(None, description="6-digit TOTP code or a backup code")


class AdminProfile(BaseModel):
    admin_id: str
    email: str
    username: str
    name: str
    role: str
    operator_entity: str
    mfa_enabled: bool
    last_login: Optional[datetime] = None
    permissions: Dict[str, Dict[str, bool]] = Field(default_factory=dict)


class LoginResponse(BaseModel):
    """Either a session (``access_token``) or ``mfa_required``"""
    mfa_required: bool = False
    access_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    admin: Optional[AdminProfile] = None


class MFAEnrollResponse(BaseModel):
    """Shown once. The secret and codes are never retrievable again."""
    secret: str
    provisioning_uri: str
    qr_code: str
    backup_codes: List[str]


class MFACodeRequest(BaseModel):
    code: str = Field(..., description="6-digit code from the authenticator app")


class MFAStatusResponse(BaseModel):
    enabled: bool


class BackupCodesResponse(BaseModel):
    backup_codes: List[str]


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=72)
    new_password: str = Field(..., min_length=settings.PASSWORD_MIN_LENGTH, max_length=72)


class LogoutResponse(BaseModel):
    revoked: bool
