"""Admin account + operator entity management endpoints"""
from typing import List

from fastapi import APIRouter, Depends, Request, status

from snap_admin.api.deps import get_store, require_permission
from snap_admin.errors import NotFoundError, ValidationError
from snap_admin.middleware.rate_limit import get_rate_limit, limiter
from snap_admin.models.admin import Admin
from snap_admin.models.enums import EntityType, PermissionAction
from snap_admin.models.role import OperatorEntity
from snap_admin.schemas.admin import (
    AdminCreate,
    AdminResponse,
    AdminUpdate,
    OperatorEntityCreate,
    OperatorEntityResponse,
    OperatorEntityUpdate,
)
from snap_admin.services.mfa import MFACoordinator
from snap_admin.store import CredentialStore
from snap_admin.utils.auth import generate_admin_id, hash_password
from snap_admin.utils.jwt_utils import SessionClaims
from snap_admin.utils.logger import logger

router = APIRouter(tags=["admin"])

_OPERATORS = EntityType.SYSTEM_CONFIG_SYSTEM_OPERATOR
_ENTITIES = EntityType.SYSTEM_CONFIG_OPERATOR_ENTITY


def _get_admin(store: CredentialStore, admin_id: str) -> Admin:
    admin = store.find_admin_by_id(admin_id)
    if not admin:
        raise NotFoundError(f"Admin {admin_id} not found")
    return admin


def _get_entity(store: CredentialStore, entity_id: int) -> OperatorEntity:
    entity = store.find_operator_entity(entity_id)
    if not entity:
        raise NotFoundError(f"Operator entity {entity_id} not found")
    return entity


# ---------------------------------------------------------------------------
# Admin accounts
# ---------------------------------------------------------------------------

@router.post("/admin/users", response_model=AdminResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("admin_write"))
def create_admin_user(
    request: Request,
    data: AdminCreate,
    store: CredentialStore = Depends(get_store),
    claims: SessionClaims = Depends(require_permission(_OPERATORS, PermissionAction.ADD)),
):
    """
    Create an admin account inside an operator entity.

    The account's role is the role of that entity. MFA starts disabled.
    """
    if "@" not in data.email:
        raise ValidationError("Invalid email address")
    if store.find_operator_entity(data.operator_entity_id) is None:
        raise ValidationError(f"Operator entity {data.operator_entity_id} does not exist")

    admin = Admin(
        admin_id=generate_admin_id(),
        email=data.email.strip().lower(),
        username=data.username.strip(),
        name=data.name,
        password_hash=hash_password(data.password),
        is_active=True,
        operator_entity_id=data.operator_entity_id,
    )
    admin = store.create_admin(admin)

    logger.info(
        f"Created admin: {admin.admin_id}",
        extra={"admin_id": claims.admin_id, "action": "create_admin"},
    )
    return admin


@router.get("/admin/users", response_model=List[AdminResponse])
def list_admin_users(
    store: CredentialStore = Depends(get_store),
    _: SessionClaims = Depends(require_permission(_OPERATORS, PermissionAction.VIEW)),
):
    """List admin accounts, newest first"""
    return store.list_admins()


@router.put("/admin/users/{admin_id}", response_model=AdminResponse)
@limiter.limit(get_rate_limit("admin_write"))
def update_admin_user(
    request: Request,
    admin_id: str,
    data: AdminUpdate,
    store: CredentialStore = Depends(get_store),
    claims: SessionClaims = Depends(require_permission(_OPERATORS, PermissionAction.EDIT)),
):
    """
    Edit an admin account.

    Also how a deactivated admin is reactivated, and how an admin changes
    role: by moving to another operator entity. Sessions pick up the new
    role on their next request.
    """
    if "@" not in data.email:
        raise ValidationError("Invalid email address")
    if admin_id == claims.admin_id and not data.is_active:
        raise ValidationError("You cannot deactivate your own account")

    admin = _get_admin(store, admin_id)
    if store.find_operator_entity(data.operator_entity_id) is None:
        raise ValidationError(f"Operator entity {data.operator_entity_id} does not exist")

    admin.email = data.email.strip().lower()
    admin.username = data.username.strip()
    admin.name = data.name
    admin.operator_entity_id = data.operator_entity_id
    admin.is_active = data.is_active
    admin = store.update_admin(admin)

    logger.info(f"Updated admin: {admin_id}", extra={"admin_id": claims.admin_id, "action": "update_admin"})
    return admin


@router.delete("/admin/users/{admin_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(get_rate_limit("admin_write"))
def deactivate_admin_user(
    request: Request,
    admin_id: str,
    store: CredentialStore = Depends(get_store),
    claims: SessionClaims = Depends(require_permission(_OPERATORS, PermissionAction.DELETE)),
):
    """Deactivate (soft-delete) an admin. Its live sessions stop working immediately."""
    if admin_id == claims.admin_id:
        raise ValidationError("You cannot deactivate your own account")

    store.deactivate_admin(_get_admin(store, admin_id))

    logger.info(f"Deactivated admin: {admin_id}", extra={"admin_id": claims.admin_id, "action": "deactivate_admin"})
    return None


@router.post("/admin/users/{admin_id}/reset-mfa", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(get_rate_limit("admin_write"))
def reset_admin_mfa(
    request: Request,
    admin_id: str,
    store: CredentialStore = Depends(get_store),
    claims: SessionClaims = Depends(require_permission(_OPERATORS, PermissionAction.EDIT)),
):
    """Clear another admin's MFA (lost device). They can enroll again afterwards."""
    admin = _get_admin(store, admin_id)
    MFACoordinator(store).disable(admin.admin_id)

    logger.info(f"Reset MFA for admin: {admin_id}", extra={"admin_id": claims.admin_id, "action": "reset_mfa"})
    return None


# ---------------------------------------------------------------------------
# Operator entities
# ---------------------------------------------------------------------------

@router.get("/operator-entities", response_model=List[OperatorEntityResponse])
def list_operator_entities(
    store: CredentialStore = Depends(get_store),
    _: SessionClaims = Depends(require_permission(_ENTITIES, PermissionAction.VIEW)),
):
    return store.list_operator_entities()


@router.post("/operator-entities", response_model=OperatorEntityResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("admin_write"))
def create_operator_entity(
    request: Request,
    data: OperatorEntityCreate,
    store: CredentialStore = Depends(get_store),
    claims: SessionClaims = Depends(require_permission(_ENTITIES, PermissionAction.ADD)),
):
    """Create an operator entity bound to an existing role"""
    if store.find_role(data.role_id) is None:
        raise ValidationError(f"Role {data.role_id} does not exist")

    entity = store.create_operator_entity(
        OperatorEntity(name=data.name, description=data.description, role_id=data.role_id, is_active=True)
    )

    logger.info(f"Created operator entity: {entity.name}", extra={"admin_id": claims.admin_id, "action": "create_entity"})
    return entity


@router.put("/operator-entities/{entity_id}", response_model=OperatorEntityResponse)
@limiter.limit(get_rate_limit("admin_write"))
def update_operator_entity(
    request: Request,
    entity_id: int,
    data: OperatorEntityUpdate,
    store: CredentialStore = Depends(get_store),
    claims: SessionClaims = Depends(require_permission(_ENTITIES, PermissionAction.EDIT)),
):
    """Rename an operator entity or rebind it to another role; every admin in it follows."""
    entity = _get_entity(store, entity_id)
    if store.find_role(data.role_id) is None:
        raise ValidationError(f"Role {data.role_id} does not exist")

    entity.name = data.name
    entity.description = data.description
    entity.role_id = data.role_id
    entity.is_active = data.is_active
    entity = store.update_operator_entity(entity)

    logger.info(f"Updated operator entity: {entity.name}", extra={"admin_id": claims.admin_id, "action": "update_entity"})
    return entity


@router.delete("/operator-entities/{entity_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(get_rate_limit("admin_write"))
def delete_operator_entity(
    request: Request,
    entity_id: int,
    store: CredentialStore = Depends(get_store),
    claims: SessionClaims = Depends(require_permission(_ENTITIES, PermissionAction.DELETE)),
):
    """Delete an operator entity. Refused (409) while admins are still assigned to it."""
    entity = _get_entity(store, entity_id)
    name = entity.name
    store.delete_operator_entity(entity)

    logger.info(f"Deleted operator entity: {name}", extra={"admin_id": claims.admin_id, "action": "delete_entity"})
    return None
