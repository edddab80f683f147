"""Pydantic schemas for request/response validation"""
from snap_admin.schemas.admin import AdminCreate, AdminResponse, OperatorEntityCreate, OperatorEntityResponse
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
from snap_admin.schemas.role import RoleResponse, RoleWrite

__all__ = [
    "AdminCreate",
    "AdminResponse",
    "OperatorEntityCreate",
    "OperatorEntityResponse",
    "AdminProfile",
    "BackupCodesResponse",
    "ChangePasswordRequest",
    "LoginRequest",
    "LoginResponse",
    "LogoutResponse",
    "MFACodeRequest",
    "MFAEnrollResponse",
    "MFAStatusResponse",
    "RoleResponse",
    "RoleWrite",
]
