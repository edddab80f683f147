"""Role, RolePermission and OperatorEntity models"""
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from snap_admin.database import Base
from snap_admin.models.enums import EntityType, PermissionAction


class Role(Base):
    """Named permission bundle attached to operator entities"""

    __tablename__ = "roles"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    permissions = relationship("RolePermission", back_populates="role", cascade="all, delete-orphan")
    operator_entities = relationship("OperatorEntity", back_populates="role")


class RolePermission(Base):
    """One (entity type, action) grant of a role. At most one row per tuple."""

    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("role_id", "entity_type", "permission", name="uq_role_permissions_role_entity_permission"),
    )

    id = Column(Integer, primary_key=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    entity_type = Column(Enum(EntityType, native_enum=False, length=64), nullable=False)
    permission = Column(Enum(PermissionAction, native_enum=False, length=16), nullable=False)
    is_granted = Column(Boolean, default=False, nullable=False)

    role = relationship("Role", back_populates="permissions")


class OperatorEntity(Base):
    """Organisational unit admins belong to; owns exactly one role"""

    __tablename__ = "operator_entities"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), unique=True, nullable=False)
    description = Column(String(500), nullable=True)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    role = relationship("Role", back_populates="operator_entities")
    admins = relationship("Admin", back_populates="operator_entity")
