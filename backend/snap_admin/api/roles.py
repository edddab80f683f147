"""Role and permission matrix administration"""
from typing import List

from fastapi import APIRouter, Depends, Request, status

from snap_admin.api.deps import get_store, require_permission
from snap_admin.errors import ConflictError, NotFoundError
from snap_admin.middleware.rate_limit import get_rate_limit, limiter
from snap_admin.models.enums import ENTITY_MENU, EntityType, PermissionAction
from snap_admin.models.role import Role
from snap_admin.schemas.role import (
    AvailablePermissions,
    EntityTypeOption,
    PermissionMatrix,
    RoleResponse,
    RoleWrite,
)
from snap_admin.services.authorization import PermissionSet
from snap_admin.store import CredentialStore, PermissionGrant
from snap_admin.utils.jwt_utils import SessionClaims
from snap_admin.utils.logger import logger

router = APIRouter(prefix="/roles", tags=["roles"])

_ROLES = EntityType.SYSTEM_CONFIG_ROLES


def _grants(matrix: PermissionMatrix) -> List[PermissionGrant]:
    return [
        (entity_type, action, granted)
        for entity_type, actions in matrix.items()
        for action, granted in actions.items()
    ]


def _to_response(store: CredentialStore, role: Role) -> RoleResponse:
    return RoleResponse(
        id=role.id,
        name=role.name,
        description=role.description,
        is_active=role.is_active,
        created_by=role.created_by,
        created_at=role.created_at,
        updated_at=role.updated_at,
        permissions=PermissionSet.from_rows(store.find_role_permissions(role.id)).to_matrix(),
        assigned_admins=store.count_role_admins(role.id),
    )


def _get_role(store: CredentialStore, role_id: int) -> Role:
    role = store.find_role(role_id)
    if not role:
        raise NotFoundError(f"Role {role_id} not found")
    return role


@router.get("", response_model=List[RoleResponse])
def list_roles(
    store: CredentialStore = Depends(get_store),
    _: SessionClaims = Depends(require_permission(_ROLES, PermissionAction.VIEW)),
):
    """List roles with their permission matrix"""
    return [_to_response(store, role) for role in store.list_roles()]


@router.get("/available-permissions", response_model=AvailablePermissions)
def available_permissions(
    _: SessionClaims = Depends(require_permission(_ROLES, PermissionAction.VIEW)),
):
    """Entity types (with their menu placement) and actions the matrix editor offers"""
    return AvailablePermissions(
        entity_types=[
            EntityTypeOption(
                value=entity_type,
                label=ENTITY_MENU[entity_type][0],
                type="submenu" if ENTITY_MENU[entity_type][1] else "main",
                parent=ENTITY_MENU[entity_type][1],
            )
            for entity_type in EntityType
        ],
        actions=list(PermissionAction),
    )


@router.get("/{role_id}", response_model=RoleResponse)
def get_role(
    role_id: int,
    store: CredentialStore = Depends(get_store),
    _: SessionClaims = Depends(require_permission(_ROLES, PermissionAction.VIEW)),
):
    return _to_response(store, _get_role(store, role_id))


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(get_rate_limit("admin_write"))
def create_role(
    request: Request,
    data: RoleWrite,
    store: CredentialStore = Depends(get_store),
    claims: SessionClaims = Depends(require_permission(_ROLES, PermissionAction.ADD)),
):
    """
    Create a role and its grants.

    Entity types or actions left out of ``permissions`` are denied.
    """
    if store.role_name_taken(data.name):
        raise ConflictError(f"Role '{data.name}' already exists")

    role = Role(name=data.name, description=data.description, is_active=True, created_by=claims.admin_id)
    role = store.save_role(role, _grants(data.permissions), replace=True)

    logger.info(f"Created role: {role.name}", extra={"admin_id": claims.admin_id, "action": "create_role"})
    return _to_response(store, role)


@router.put("/{role_id}", response_model=RoleResponse)
@limiter.limit(get_rate_limit("admin_write"))
def update_role(
    request: Request,
    role_id: int,
    data: RoleWrite,
    store: CredentialStore = Depends(get_store),
    claims: SessionClaims = Depends(require_permission(_ROLES, PermissionAction.EDIT)),
):
    """
    Rename a role and replace its permission matrix.

    ``permissions`` is the complete matrix: pairs left out are revoked.
    Existing rows are updated in place, never duplicated.
    """
    role = _get_role(store, role_id)
    if store.role_name_taken(data.name, exclude_id=role.id):
        raise ConflictError(f"Role '{data.name}' already exists")

    role.name = data.name
    role.description = data.description
    role = store.save_role(role, _grants(data.permissions), replace=True)

    logger.info(f"Updated role: {role.name}", extra={"admin_id": claims.admin_id, "action": "update_role"})
    return _to_response(store, role)


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(get_rate_limit("admin_write"))
def delete_role(
    request: Request,
    role_id: int,
    store: CredentialStore = Depends(get_store),
    claims: SessionClaims = Depends(require_permission(_ROLES, PermissionAction.DELETE)),
):
    """Delete a role. Refused (409) while any operator entity still uses it."""
    role = _get_role(store, role_id)
    name = role.name
    store.delete_role(role)

    logger.info(f"Deleted role: {name}", extra={"admin_id": claims.admin_id, "action": "delete_role"})
    return None
