"""Authentication utilities"""
import secrets
from functools import lru_cache

import bcrypt

from snap_admin.config import settings


def hash_password(password: str) -> str:
    """Hash a password using bcrypt"""
    salt = bcrypt.gensalt(rounds=settings.PASSWORD_BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against its bcrypt hash"""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    return hash_password(secrets.token_urlsafe(16))


def burn_password_check(password: str) -> None:
    """Spend one bcrypt verification that cannot match.

    Used when the login identifier matches no admin, so unknown accounts
    cost the same as a wrong password.
    """
    verify_password(password, _dummy_password_hash())


def generate_admin_id() -> str:
    """Generate a unique public admin ID"""
    random_part = secrets.token_urlsafe(10)
    return f"{settings.ADMIN_ID_PREFIX}{random_part}"
