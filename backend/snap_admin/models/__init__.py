"""Database models"""
from snap_admin.models.admin import Admin, BackupCode
from snap_admin.models.enums import EntityType, PermissionAction
from snap_admin.models.revoked_token import RevokedToken
from snap_admin.models.role import OperatorEntity, Role, RolePermission

__all__ = [
    "Admin",
    "BackupCode",
    "EntityType",
    "OperatorEntity",
    "PermissionAction",
    "RevokedToken",
    "Role",
    "RolePermission",
]
