"""Role-based authorization: (entity type, action) checks against a role's grants.

Deny by default: any tuple a role has no row for is denied, so entity types
or actions added later never widen existing roles.
"""
from typing import TYPE_CHECKING, Dict, Iterable, Mapping, Optional, Tuple

from snap_admin.models.enums import EntityType, PermissionAction
from snap_admin.models.role import Role, RolePermission

if TYPE_CHECKING:
    from snap_admin.utils.jwt_utils import SessionClaims

PermissionKey = Tuple[EntityType, PermissionAction]


class PermissionSet:
    """Immutable mapping of (entity type, action) to granted"""

    __slots__ = ("_grants",)

    def __init__(self, grants: Optional[Mapping[PermissionKey, bool]] = None):
        self._grants: Dict[PermissionKey, bool] = {
            (EntityType(entity), PermissionAction(action)): bool(granted)
            for (entity, action), granted in (grants or {}).items()
        }

    @classmethod
    def from_rows(cls, rows: Iterable[RolePermission]) -> "PermissionSet":
        return cls({(row.entity_type, row.permission): row.is_granted for row in rows})

    @classmethod
    def for_role(cls, role: Optional[Role]) -> "PermissionSet":
        """Grants of an active role; an inactive or missing role grants nothing."""
        if role is None or not role.is_active:
            return cls()
        return cls.from_rows(role.permissions)

    def granted(self, entity_type: EntityType, action: PermissionAction) -> bool:
        return self._grants.get((entity_type, action), False)

    def to_matrix(self) -> Dict[str, Dict[str, bool]]:
        """Nested ``{entity: {action: granted}}`` view used by the dashboard"""
        matrix: Dict[str, Dict[str, bool]] = {}
        for (entity_type, action), granted in sorted(self._grants.items()):
            matrix.setdefault(entity_type.value, {})[action.value] = granted
        return matrix

    def __len__(self) -> int:
        return len(self._grants)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, PermissionSet) and self._grants == other._grants

    def __repr__(self) -> str:
        granted = sum(1 for value in self._grants.values() if value)
        return f"PermissionSet(granted={granted}, rows={len(self._grants)})"


def has_permission(claims: "SessionClaims", entity_type: EntityType, action: PermissionAction) -> bool:
    """True only if the caller's role explicitly grants ``action`` on ``entity_type``."""
    return claims.permissions.granted(entity_type, action)


def has_any(claims: "SessionClaims", required: Iterable[PermissionKey]) -> bool:
    """True if at least one of the pairs is granted. False for an empty list."""
    return any(has_permission(claims, entity_type, action) for entity_type, action in required)


def has_all(claims: "SessionClaims", required: Iterable[PermissionKey]) -> bool:
    """True only if every pair is granted. True for an empty list."""
    return all(has_permission(claims, entity_type, action) for entity_type, action in required)


def describe(required: Iterable[PermissionKey], joiner: str) -> str:
    """Human-readable requirement, for logs only"""
    return f" {joiner} ".join(f"{action.value} on {entity_type.value}" for entity_type, action in required)
