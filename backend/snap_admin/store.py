"""Credential store: every read and write the auth core makes against the database.

Driver-level failures (connection refused, timeouts) are re-raised as
:class:`StorageUnavailable` so callers never mistake an outage for a failed
login.
"""
import functools
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, joinedload

from snap_admin.errors import ConflictError, StorageUnavailable
from snap_admin.models.admin import Admin, BackupCode
from snap_admin.models.enums import EntityType, PermissionAction
from snap_admin.models.revoked_token import RevokedToken
from snap_admin.models.role import OperatorEntity, Role, RolePermission
from snap_admin.utils.logger import logger

_UNSET = object()

PermissionGrant = Tuple[EntityType, PermissionAction, bool]


def _storage_call(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except (OperationalError, InterfaceError, PoolTimeoutError) as exc:
            self.db.rollback()
            logger.error(
                f"Credential store call failed: {method.__name__}",
                extra={"action": method.__name__},
                exc_info=True,
            )
            raise StorageUnavailable() from exc

    return wrapper


class CredentialStore:
    """Thin repository over a request-scoped SQLAlchemy session"""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Admin lookups
    # ------------------------------------------------------------------

    def _admin_query(self):
        return self.db.query(Admin).options(
            joinedload(Admin.operator_entity).joinedload(OperatorEntity.role)
        )

    @_storage_call
    def find_admin_by_id(self, admin_id: str) -> Optional[Admin]:
        return self._admin_query().filter(Admin.admin_id == admin_id).first()

    @_storage_call
    def find_admin_by_email(self, email: str) -> Optional[Admin]:
        return self._admin_query().filter(func.lower(Admin.email) == email.strip().lower()).first()

    @_storage_call
    def find_admin_by_username(self, username: str) -> Optional[Admin]:
        return self._admin_query().filter(Admin.username == username.strip()).first()

    @_storage_call
    def record_login(self, admin: Admin) -> None:
        admin.last_login = datetime.utcnow()
        self.db.commit()

    @_storage_call
    def update_password(self, admin: Admin, password_hash: str) -> None:
        admin.password_hash = password_hash
        self.db.commit()

    # ------------------------------------------------------------------
    # MFA state
    # ------------------------------------------------------------------

    @_storage_call
    def update_admin_mfa(
        self,
        admin_id: str,
        expected_revision: int,
        *,
        secret=_UNSET,
        enabled: Optional[bool] = None,
        verified: Optional[bool] = None,
        backup_code_hashes: Optional[List[str]] = None,
        require_secret: bool = False,
    ) -> bool:
        """Conditionally write MFA columns and replace the backup-code batch.

        The write only lands if ``mfa_revision`` still equals
        ``expected_revision`` (and, with ``require_secret``, a secret is
        present). Returns False when another request got there first.
        """
        values = {"mfa_revision": expected_revision + 1, "updated_at": datetime.utcnow()}
        if secret is not _UNSET:
            values["mfa_secret"] = secret
        if enabled is not None:
            values["mfa_enabled"] = enabled
        if verified is not None:
            values["mfa_verified"] = verified

        stmt = update(Admin).where(
            Admin.admin_id == admin_id,
            Admin.mfa_revision == expected_revision,
        )
        if require_secret:
            stmt = stmt.where(Admin.mfa_secret.isnot(None))

        result = self.db.execute(stmt.values(**values).execution_options(synchronize_session=False))
        if result.rowcount != 1:
            self.db.rollback()
            return False

        if backup_code_hashes is not None:
            admin_pk = self.db.query(Admin.id).filter(Admin.admin_id == admin_id).scalar()
            self.db.query(BackupCode).filter(BackupCode.admin_pk == admin_pk).delete(synchronize_session=False)
            self.db.add_all([BackupCode(admin_pk=admin_pk, code_hash=h) for h in backup_code_hashes])

        self.db.commit()
        return True

    @_storage_call
    def find_unconsumed_backup_codes(self, admin: Admin) -> List[BackupCode]:
        return (
            self.db.query(BackupCode)
            .filter(BackupCode.admin_pk == admin.id, BackupCode.consumed_at.is_(None))
            .order_by(BackupCode.id)
            .all()
        )

    @_storage_call
    def consume_backup_code(self, code_id: int) -> bool:
        """Mark one code consumed. True for exactly one caller per code."""
        result = self.db.execute(
            update(BackupCode)
            .where(BackupCode.id == code_id, BackupCode.consumed_at.is_(None))
            .values(consumed_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Roles and permissions
    # ------------------------------------------------------------------

    @_storage_call
    def find_role_permissions(self, role_id: int) -> List[RolePermission]:
        return self.db.query(RolePermission).filter(RolePermission.role_id == role_id).all()

    @_storage_call
    def set_role_permissions(self, role: Role, grants: Iterable[PermissionGrant], replace: bool = False) -> None:
        """Upsert grants on (role, entity type, action); never adds a duplicate row.

        With ``replace`` the submitted grants become the whole matrix: every
        existing row they leave out is set to not granted.
        """
        existing: Dict[Tuple[EntityType, PermissionAction], RolePermission] = {
            (row.entity_type, row.permission): row
            for row in self.db.query(RolePermission).filter(RolePermission.role_id == role.id)
        }
        submitted = set()
        for entity_type, action, granted in grants:
            row = existing.get((entity_type, action))
            if row is None:
                row = RolePermission(role_id=role.id, entity_type=entity_type, permission=action)
                self.db.add(row)
                existing[(entity_type, action)] = row
            row.is_granted = bool(granted)
            submitted.add((entity_type, action))

        if replace:
            for key, row in existing.items():
                if key not in submitted:
                    row.is_granted = False

        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError(f"Permissions of role '{role.name}' were changed concurrently") from exc

    @_storage_call
    def list_roles(self) -> List[Role]:
        return self.db.query(Role).order_by(Role.name).all()

    @_storage_call
    def find_role(self, role_id: int) -> Optional[Role]:
        return self.db.query(Role).filter(Role.id == role_id).first()

    @_storage_call
    def find_role_by_name(self, name: str) -> Optional[Role]:
        return self.db.query(Role).filter(Role.name == name).first()

    @_storage_call
    def role_name_taken(self, name: str, exclude_id: Optional[int] = None) -> bool:
        query = self.db.query(Role.id).filter(Role.name == name)
        if exclude_id is not None:
            query = query.filter(Role.id != exclude_id)
        return query.first() is not None

    @_storage_call
    def save_role(self, role: Role, grants: Iterable[PermissionGrant], replace: bool = False) -> Role:
        """Persist a new or edited role together with its grants in one transaction."""
        self.db.add(role)
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError(f"Role '{role.name}' already exists") from exc
        self.set_role_permissions(role, grants, replace=replace)
        self.db.refresh(role)
        return role

    @_storage_call
    def count_role_admins(self, role_id: int) -> int:
        return (
            self.db.query(Admin.id)
            .join(Admin.operator_entity)
            .filter(OperatorEntity.role_id == role_id)
            .count()
        )

    @_storage_call
    def delete_role(self, role: Role) -> None:
        in_use = self.db.query(OperatorEntity.id).filter(OperatorEntity.role_id == role.id).first()
        if in_use is not None:
            raise ConflictError(f"Role '{role.name}' is assigned to an operator entity")
        self.db.delete(role)
        self.db.commit()

    # ------------------------------------------------------------------
    # Admin accounts and operator entities
    # ------------------------------------------------------------------

    @_storage_call
    def list_admins(self) -> List[Admin]:
        return self.db.query(Admin).order_by(Admin.created_at.desc()).all()

    @_storage_call
    def create_admin(self, admin: Admin) -> Admin:
        self.db.add(admin)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError("An admin with this email or username already exists") from exc
        self.db.refresh(admin)
        return admin

    @_storage_call
    def update_admin(self, admin: Admin) -> Admin:
        """Commit edits made to ``admin``; a taken email or username is a conflict."""
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError("An admin with this email or username already exists") from exc
        self.db.refresh(admin)
        return admin

    @_storage_call
    def deactivate_admin(self, admin: Admin) -> None:
        admin.is_active = False
        self.db.commit()

    @_storage_call
    def list_operator_entities(self) -> List[OperatorEntity]:
        return self.db.query(OperatorEntity).order_by(OperatorEntity.name).all()

    @_storage_call
    def find_operator_entity(self, entity_id: int) -> Optional[OperatorEntity]:
        return self.db.query(OperatorEntity).filter(OperatorEntity.id == entity_id).first()

    @_storage_call
    def create_operator_entity(self, entity: OperatorEntity) -> OperatorEntity:
        self.db.add(entity)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError(f"Operator entity '{entity.name}' already exists") from exc
        self.db.refresh(entity)
        return entity

    @_storage_call
    def update_operator_entity(self, entity: OperatorEntity) -> OperatorEntity:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError(f"Operator entity '{entity.name}' already exists") from exc
        self.db.refresh(entity)
        return entity

    @_storage_call
    def delete_operator_entity(self, entity: OperatorEntity) -> None:
        in_use = self.db.query(Admin.id).filter(Admin.operator_entity_id == entity.id).first()
        if in_use is not None:
            raise ConflictError(f"Operator entity '{entity.name}' still has admins assigned")
        self.db.delete(entity)
        self.db.commit()

    # ------------------------------------------------------------------
    # Revocation
    # ------------------------------------------------------------------

    @_storage_call
    def is_token_revoked(self, jti: str) -> bool:
        return self.db.query(RevokedToken.id).filter(RevokedToken.jti == jti).first() is not None

    @_storage_call
    def revoke_token(self, jti: str, admin_id: str, expires_at: datetime) -> None:
        """Blocklist ``jti`` and drop entries whose tokens have expired anyway."""
        self.prune_revoked_tokens()
        if self.is_token_revoked(jti):
            return
        self.db.add(RevokedToken(jti=jti, admin_id=admin_id, expires_at=expires_at))
        self.db.commit()

    @_storage_call
    def prune_revoked_tokens(self, now: Optional[datetime] = None) -> int:
        """Delete revocations past their token's expiry; signature checks already reject those tokens."""
        removed = (
            self.db.query(RevokedToken)
            .filter(RevokedToken.expires_at < (now or datetime.utcnow()))
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return removed
