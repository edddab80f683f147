"""Admin and BackupCode models — dashboard operators and their MFA state"""
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from snap_admin.database import Base


class Admin(Base):
    """A dashboard operator.

    The role comes from the operator entity the admin belongs to. MFA columns
    are owned exclusively by the MFA coordinator; ``mfa_revision`` is bumped on
    every MFA write so concurrent transitions can be detected.
    """

    __tablename__ = "admins"

    id = Column(Integer, primary_key=True)
    admin_id = Column(String(50), unique=True, nullable=False, index=True)   # "adm_xxx"
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)                     # bcrypt
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    operator_entity_id = Column(Integer, ForeignKey("operator_entities.id"), nullable=False, index=True)

    mfa_enabled = Column(Boolean, default=False, nullable=False)
    mfa_secret = Column(String(64), nullable=True)                          # base32, set at enrollment
    mfa_verified = Column(Boolean, default=False, nullable=False)
    mfa_revision = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    operator_entity = relationship("OperatorEntity", back_populates="admins")
    backup_codes = relationship(
        "BackupCode",
        back_populates="admin",
        order_by="BackupCode.id",
        cascade="all, delete-orphan",
    )


class BackupCode(Base):
    """Single-use recovery code, stored as a bcrypt hash only"""

    __tablename__ = "admin_backup_codes"

    id = Column(Integer, primary_key=True)
    admin_pk = Column(Integer, ForeignKey("admins.id", ondelete="CASCADE"), nullable=False, index=True)
    code_hash = Column(String(255), nullable=False)
    consumed_at = Column(DateTime, nullable=True)                           # null while usable
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    admin = relationship("Admin", back_populates="backup_codes")
