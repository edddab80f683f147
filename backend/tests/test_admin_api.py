"""Tests for admin account and operator entity endpoints"""
import pytest
from fastapi.testclient import TestClient

from snap_admin.models.enums import EntityType, PermissionAction
from snap_admin.schemas.admin import AdminResponse
from snap_admin.services.mfa import MFACoordinator, MFAState, mfa_state
from snap_admin.utils import totp

PASSWORD = "correct-horse-battery"


@pytest.fixture
def operator_admin(make_admin, make_role):
    """Admin allowed to manage admin accounts and operator entities"""
    role = make_role([
        (entity, action)
        for entity in (EntityType.SYSTEM_CONFIG_SYSTEM_OPERATOR, EntityType.SYSTEM_CONFIG_OPERATOR_ENTITY)
        for action in PermissionAction
    ])
    return make_admin(role)


def _new_admin(entity_id: int, n: int = 1) -> dict:
    return {
        "email": f"New.Admin{n}@Snap.test",
        "username": f"new_admin_{n}",
        "name": "New Admin",
        "password": "initial-password",
        "operator_entity_id": entity_id,
    }


def test_create_admin(client: TestClient, operator_admin, auth_headers):
    entity_id = operator_admin.operator_entity_id
    response = client.post("/admin/users", json=_new_admin(entity_id), headers=auth_headers(operator_admin))
    assert response.status_code == 201

    data = response.json()
    assert data["admin_id"].startswith("adm_")
    assert data["email"] == "new.admin1@snap.test"
    assert data["mfa_enabled"] is False
    assert data["operator_entity_id"] == entity_id
    assert "password" not in data and "password_hash" not in data

    login = client.post("/auth/login", json={"username": "new_admin_1", "password": "initial-password"})
    assert login.status_code == 200


def test_create_admin_duplicate(client: TestClient, operator_admin, auth_headers):
    headers = auth_headers(operator_admin)
    body = _new_admin(operator_admin.operator_entity_id)
    assert client.post("/admin/users", json=body, headers=headers).status_code == 201
    assert client.post("/admin/users", json=body, headers=headers).status_code == 409


def test_create_admin_unknown_entity(client: TestClient, operator_admin, auth_headers):
    response = client.post("/admin/users", json=_new_admin(9999), headers=auth_headers(operator_admin))
    assert response.status_code == 400


def test_create_admin_requires_permission(client: TestClient, make_admin, auth_headers):
    admin = make_admin()
    response = client.post("/admin/users", json=_new_admin(admin.operator_entity_id), headers=auth_headers(admin))
    assert response.status_code == 403


def test_list_admins(client: TestClient, operator_admin, make_admin, auth_headers):
    make_admin()
    response = client.get("/admin/users", headers=auth_headers(operator_admin))
    assert response.status_code == 200
    assert len(response.json()) == 2


def test_deactivate_admin_ends_its_sessions(client: TestClient, operator_admin, make_admin, auth_headers):
    target = make_admin()
    target_headers = auth_headers(target)
    assert client.get("/auth/me", headers=target_headers).status_code == 200

    response = client.delete(f"/admin/users/{target.admin_id}", headers=auth_headers(operator_admin))
    assert response.status_code == 204

    assert client.get("/auth/me", headers=target_headers).status_code == 401


def test_cannot_deactivate_self(client: TestClient, operator_admin, auth_headers):
    response = client.delete(f"/admin/users/{operator_admin.admin_id}", headers=auth_headers(operator_admin))
    assert response.status_code == 400


def test_deactivate_missing_admin(client: TestClient, operator_admin, auth_headers):
    response = client.delete("/admin/users/adm_missing", headers=auth_headers(operator_admin))
    assert response.status_code == 404


def test_reset_mfa(client: TestClient, operator_admin, make_admin, store, auth_headers):
    target = make_admin()
    coordinator = MFACoordinator(store)
    enrollment = coordinator.enroll(target.admin_id)
    coordinator.confirm(target.admin_id, totp.current_code(enrollment.secret))

    response = client.post(f"/admin/users/{target.admin_id}/reset-mfa", headers=auth_headers(operator_admin))
    assert response.status_code == 204
    assert mfa_state(store.find_admin_by_id(target.admin_id)) == MFAState.DISABLED


def test_operator_entities(client: TestClient, operator_admin, make_role, auth_headers):
    headers = auth_headers(operator_admin)
    role = make_role(name="Partner")

    response = client.post(
        "/operator-entities",
        json={"name": "Colombo Partners", "description": "Franchise", "role_id": role.id},
        headers=headers,
    )
    assert response.status_code == 201
    assert response.json()["role_id"] == role.id

    names = [entity["name"] for entity in client.get("/operator-entities", headers=headers).json()]
    assert "Colombo Partners" in names


def test_operator_entity_duplicate_and_unknown_role(client: TestClient, operator_admin, auth_headers):
    headers = auth_headers(operator_admin)
    role_id = operator_admin.operator_entity.role_id
    body = {"name": "Dup", "role_id": role_id}

    assert client.post("/operator-entities", json=body, headers=headers).status_code == 201
    assert client.post("/operator-entities", json=body, headers=headers).status_code == 409
    assert client.post("/operator-entities", json={"name": "X", "role_id": 9999}, headers=headers).status_code == 400


def test_operator_entities_require_permission(client: TestClient, make_admin, make_role, auth_headers):
    admin = make_admin(make_role([(EntityType.SYSTEM_CONFIG_SYSTEM_OPERATOR, PermissionAction.VIEW)]))
    assert client.get("/operator-entities", headers=auth_headers(admin)).status_code == 403


def _admin_update(admin, **changes) -> dict:
    body = {
        "email": admin.email,
        "username": admin.username,
        "name": admin.name,
        "operator_entity_id": admin.operator_entity_id,
        "is_active": admin.is_active,
    }
    body.update(changes)
    return body


def test_update_admin_reactivates(client: TestClient, operator_admin, make_admin, auth_headers):
    target = make_admin(is_active=False)
    response = client.put(
        f"/admin/users/{target.admin_id}",
        json=_admin_update(target, is_active=True, name="Renamed"),
        headers=auth_headers(operator_admin),
    )
    assert response.status_code == 200
    assert response.json()["is_active"] is True
    assert response.json()["name"] == "Renamed"

    login = client.post("/auth/login", json={"username": target.username, "password": PASSWORD})
    assert login.status_code == 200


def test_moving_admin_to_another_entity_changes_role(
    client: TestClient, operator_admin, make_admin, make_role, auth_headers
):
    target = make_admin(make_role([(EntityType.ORDERS, PermissionAction.VIEW)]))
    target_headers = auth_headers(target)
    finance = make_role([(EntityType.SETTLEMENTS, PermissionAction.VIEW)], name="Finance")
    entity_id = client.post(
        "/operator-entities", json={"name": "Finance Desk", "role_id": finance.id}, headers=auth_headers(operator_admin)
    ).json()["id"]

    response = client.put(
        f"/admin/users/{target.admin_id}",
        json=_admin_update(target, operator_entity_id=entity_id),
        headers=auth_headers(operator_admin),
    )
    assert response.status_code == 200
    assert response.json()["operator_entity_id"] == entity_id

    # The existing session follows the new role
    permissions = client.get("/auth/me", headers=target_headers).json()["permissions"]
    assert permissions == {"SETTLEMENTS": {"VIEW": True}}


def test_update_admin_validation(client: TestClient, operator_admin, make_admin, auth_headers):
    headers = auth_headers(operator_admin)
    target = make_admin()
    other = make_admin()

    response = client.put(
        f"/admin/users/{operator_admin.admin_id}", json=_admin_update(operator_admin, is_active=False), headers=headers
    )
    assert response.status_code == 400

    response = client.put(
        f"/admin/users/{target.admin_id}", json=_admin_update(target, operator_entity_id=9999), headers=headers
    )
    assert response.status_code == 400

    response = client.put(f"/admin/users/{target.admin_id}", json=_admin_update(target, email=other.email), headers=headers)
    assert response.status_code == 409

    response = client.put("/admin/users/adm_missing", json=_admin_update(target), headers=headers)
    assert response.status_code == 404


def test_update_admin_requires_edit(client: TestClient, make_admin, make_role, auth_headers):
    admin = make_admin(make_role([(EntityType.SYSTEM_CONFIG_SYSTEM_OPERATOR, PermissionAction.VIEW)]))
    target = make_admin()
    response = client.put(f"/admin/users/{target.admin_id}", json=_admin_update(target), headers=auth_headers(admin))
    assert response.status_code == 403


def test_update_operator_entity_rebinds_role(
    client: TestClient, operator_admin, make_admin, make_role, auth_headers
):
    member = make_admin(make_role([(EntityType.ORDERS, PermissionAction.VIEW)]))
    member_headers = auth_headers(member)
    viewer = make_role([(EntityType.JOURNALS, PermissionAction.VIEW)], name="Journal Viewer")

    response = client.put(
        f"/operator-entities/{member.operator_entity_id}",
        json={"name": "Renamed Desk", "description": "Moved to journals", "role_id": viewer.id},
        headers=auth_headers(operator_admin),
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Renamed Desk"
    assert response.json()["role_id"] == viewer.id

    permissions = client.get("/auth/me", headers=member_headers).json()["permissions"]
    assert permissions == {"JOURNALS": {"VIEW": True}}


def test_update_operator_entity_errors(client: TestClient, operator_admin, auth_headers):
    headers = auth_headers(operator_admin)
    entity_id = operator_admin.operator_entity_id

    response = client.put(f"/operator-entities/{entity_id}", json={"name": "X", "role_id": 9999}, headers=headers)
    assert response.status_code == 400

    role_id = operator_admin.operator_entity.role_id
    response = client.put("/operator-entities/9999", json={"name": "X", "role_id": role_id}, headers=headers)
    assert response.status_code == 404


def test_delete_operator_entity(client: TestClient, operator_admin, auth_headers):
    headers = auth_headers(operator_admin)
    role_id = operator_admin.operator_entity.role_id
    entity_id = client.post("/operator-entities", json={"name": "Empty", "role_id": role_id}, headers=headers).json()["id"]

    assert client.delete(f"/operator-entities/{entity_id}", headers=headers).status_code == 204
    assert client.delete(f"/operator-entities/{entity_id}", headers=headers).status_code == 404


def test_delete_operator_entity_with_admins(client: TestClient, operator_admin, auth_headers):
    response = client.delete(
        f"/operator-entities/{operator_admin.operator_entity_id}", headers=auth_headers(operator_admin)
    )
    assert response.status_code == 409


def test_admin_response_reads_orm_objects(make_admin):
    admin = make_admin()
    assert AdminResponse.model_config["from_attributes"] is True

    response = AdminResponse.model_validate(admin)
    assert response.admin_id == admin.admin_id
    assert response.operator_entity_id == admin.operator_entity_id
