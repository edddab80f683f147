"""
Role seed script — creates the default roles and their grants.

Run from backend/ against the configured DATABASE_URL:
    python seed_roles.py
    python seed_roles.py --grant Manager RIDE_SERVICE_TIERS VIEW

Creates (or tops up, when they already exist):
  - Super Admin: every action on every entity type
  - Manager:     every action outside system configuration and authentication
  - Viewer:      VIEW on every entity type

Safe to rerun: grants are upserted on (role, entity type, action), so no
duplicate rows are ever written. ``--grant`` adds one tuple to an existing
role, for dashboard sections added after the role was seeded.
"""
import argparse
import sys
from typing import Dict, List, Tuple

from snap_admin.database import Base, SessionLocal, engine
from snap_admin.errors import SnapAdminError
from snap_admin.models.enums import EntityType, PermissionAction
from snap_admin.models.role import Role
from snap_admin.store import CredentialStore, PermissionGrant

_MANAGER_EXCLUDED_PREFIXES = ("SYSTEM_CONFIG", "AUTHENTICATION")

MANAGER_ENTITIES = [
    entity for entity in EntityType
    if not entity.value.startswith(_MANAGER_EXCLUDED_PREFIXES)
]

DEFAULT_ROLES: Dict[str, Tuple[str, List[PermissionGrant]]] = {
    "Super Admin": (
        "Full access to all features and system configuration",
        [(entity, action, True) for entity in EntityType for action in PermissionAction],
    ),
    "Manager": (
        "Can view and manage users, products, orders, settlements and rides",
        [(entity, action, True) for entity in MANAGER_ENTITIES for action in PermissionAction],
    ),
    "Viewer": (
        "Read-only access to view data",
        [(entity, PermissionAction.VIEW, True) for entity in EntityType],
    ),
}


def seed_default_roles(store: CredentialStore) -> Dict[str, Role]:
    """Create missing default roles and upsert their grants. Existing grants outside the defaults are left alone."""
    seeded = {}
    for name, (description, grants) in DEFAULT_ROLES.items():
        role = store.find_role_by_name(name)
        if role is None:
            role = Role(name=name, description=description, is_active=True, created_by="seed")
        seeded[name] = store.save_role(role, grants)
    return seeded


def grant(store: CredentialStore, role_name: str, entity_type: EntityType, action: PermissionAction) -> Role:
    """Grant a single (entity type, action) to an existing role"""
    role = store.find_role_by_name(role_name)
    if role is None:
        raise SnapAdminError(f"Role '{role_name}' does not exist")
    store.set_role_permissions(role, [(entity_type, action, True)])
    return role


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed default admin roles and permissions")
    parser.add_argument(
        "--grant",
        nargs=3,
        metavar=("ROLE", "ENTITY_TYPE", "ACTION"),
        help="grant one action on one entity type to an existing role instead of seeding",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="create missing tables first (local SQLite setups without Alembic)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)

    if args.create_tables:
        Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    store = CredentialStore(db)
    try:
        if args.grant:
            role_name, entity_name, action_name = args.grant
            try:
                entity_type = EntityType(entity_name.upper())
                action = PermissionAction(action_name.upper())
            except ValueError as exc:
                print(f"  ❌ {exc}")
                return 2
            grant(store, role_name, entity_type, action)
            print(f"  ✓ {role_name}: {action.value} on {entity_type.value}")
            return 0

        print("\n🌱 Seeding roles...\n")
        for name, role in seed_default_roles(store).items():
            granted = sum(1 for row in store.find_role_permissions(role.id) if row.is_granted)
            print(f"  ✓ {name:<12} {granted} grants")
        print("\nDone.")
        return 0
    except SnapAdminError as exc:
        print(f"  ❌ {exc.message}")
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
