"""Role and permission matrix schemas"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from snap_admin.models.enums import EntityType, PermissionAction

PermissionMatrix = Dict[EntityType, Dict[PermissionAction, bool]]


class RoleWrite(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    permissions: PermissionMatrix = Field(
        default_factory=dict,
        description="{entity_type: {action: granted}}; unknown entity types or actions are rejected",
    )


class RoleResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    is_active: bool
    created_by: Optional[str]
    created_at: datetime
    updated_at: datetime
    permissions: Dict[str, Dict[str, bool]]
    assigned_admins: int = 0


class EntityTypeOption(BaseModel):
    value: EntityType
    label: str
    type: str  # "main" or "submenu"
    parent: Optional[EntityType] = None


class AvailablePermissions(BaseModel):
    entity_types: List[EntityTypeOption]
    actions: List[PermissionAction]
