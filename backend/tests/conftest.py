"""Pytest configuration and fixtures"""
import itertools
import os
from typing import Callable, Generator, Iterable, Tuple

# Settings are read at import time; configure before importing the app
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["METRICS_ENABLED"] = "false"
os.environ["PASSWORD_BCRYPT_ROUNDS"] = "4"
os.environ["BACKUP_CODE_BCRYPT_ROUNDS"] = "4"
os.environ["JWT_SECRET_KEY"] = "test-signing-key-not-for-production"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from snap_admin.database import Base, get_db
from snap_admin.main import app
from snap_admin.models.admin import Admin
from snap_admin.models.enums import EntityType, PermissionAction
from snap_admin.models.role import OperatorEntity, Role
from snap_admin.store import CredentialStore
from snap_admin.utils.auth import generate_admin_id, hash_password
from snap_admin.utils.jwt_utils import SessionIssuer, get_session_issuer

TEST_DATABASE_URL = "sqlite:///./test.db"
PASSWORD = "correct-horse-battery"

engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

_sequence = itertools.count(1)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create test client with database session override"""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def store(db: Session) -> CredentialStore:
    return CredentialStore(db)


@pytest.fixture
def issuer() -> SessionIssuer:
    """The issuer the app itself uses, so its tokens are accepted by the API"""
    return get_session_issuer()


@pytest.fixture
def make_role(store: CredentialStore) -> Callable[..., Role]:
    """Factory: a role granting exactly the given (entity type, action) pairs"""

    def _make_role(
        grants: Iterable[Tuple[EntityType, PermissionAction]] = (),
        name: str = None,
        is_active: bool = True,
    ) -> Role:
        role = Role(name=name or f"role-{next(_sequence)}", is_active=is_active)
        return store.save_role(role, [(entity, action, True) for entity, action in grants])

    return _make_role


@pytest.fixture
def make_admin(db: Session, make_role) -> Callable[..., Admin]:
    """Factory: an admin in its own operator entity bound to ``role``"""

    def _make_admin(role: Role = None, password: str = PASSWORD, is_active: bool = True) -> Admin:
        role = role or make_role()
        n = next(_sequence)
        entity = OperatorEntity(name=f"entity-{n}", role_id=role.id, is_active=True)
        db.add(entity)
        db.flush()

        admin = Admin(
            admin_id=generate_admin_id(),
            email=f"admin{n}@snap.test",
            username=f"admin{n}",
            name=f"Admin {n}",
            password_hash=hash_password(password),
            is_active=is_active,
            operator_entity_id=entity.id,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
        return admin

    return _make_admin


@pytest.fixture
def auth_headers(issuer: SessionIssuer) -> Callable[[Admin], dict]:
    """Bearer headers for a freshly issued session of ``admin``"""

    def _auth_headers(admin: Admin) -> dict:
        return {"Authorization": f"Bearer {issuer.issue(admin).token}"}

    return _auth_headers


@pytest.fixture
def role_admin(make_admin, make_role) -> Admin:
    """Admin allowed to run role administration"""
    role = make_role([
        (EntityType.SYSTEM_CONFIG_ROLES, action) for action in PermissionAction
    ])
    return make_admin(role)
