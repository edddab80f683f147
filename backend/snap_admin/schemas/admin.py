"""Admin account and operator entity schemas"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from snap_admin.config import settings


class AdminCreate(BaseModel):
    email: str = Field(..., description="Login email")
    username: str = Field(..., min_length=3, max_length=100)
    name: str = Field(..., description="Display name")
    password: str = Field(..., min_length=settings.PASSWORD_MIN_LENGTH, max_length=72)
    operator_entity_id: int = Field(..., description="Operator entity the admin belongs to; determines the role")


class AdminUpdate(BaseModel):
    """Full replacement of an admin's editable fields. Moving the admin to another operator entity changes its role."""

    email: str
    username: str = Field(..., min_length=3, max_length=100)
    name: str
    operator_entity_id: int
    is_active: bool


class AdminResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    admin_id: str
    email: str
    username: str
    name: str
    is_active: bool
    mfa_enabled: bool
    last_login: Optional[datetime]
    operator_entity_id: int
    created_at: datetime


class OperatorEntityCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    role_id: int


class OperatorEntityUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    role_id: int
    is_active: bool = True


class OperatorEntityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]
    role_id: int
    is_active: bool
    created_at: datetime
