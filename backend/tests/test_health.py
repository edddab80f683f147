"""Tests for health endpoints"""
from fastapi.testclient import TestClient


def test_health(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_ready(client: TestClient):
    response = client.get("/health/ready")
    assert response.status_code == 200
    assert response.json()["checks"]["database"] is True


def test_live(client: TestClient):
    assert client.get("/health/live").json()["status"] == "alive"


def test_stats_counts_admins(client: TestClient, make_admin):
    make_admin()
    make_admin(is_active=False)

    data = client.get("/health/stats").json()
    assert data["admins"] == {"total": 2, "active": 1, "mfa_enabled": 0}
    assert data["roles"] == 2
