"""
Backup (recovery) codes for admins who lost their authenticator.

Codes are shown to the admin once, stored only as salted bcrypt hashes, and
each one authorizes at most one login.
"""
import secrets
from typing import Iterable, List, Optional, Sequence

import bcrypt

from snap_admin.config import settings

# No 0/O, 1/I/L: codes get copied off paper
ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 10
GROUP_SIZE = 5


def normalize(code: Optional[str]) -> str:
    """Uppercase and drop the separators people type."""
    return (code or "").replace("-", "").replace(" ", "").upper()


def looks_like_backup_code(code: Optional[str]) -> bool:
    normalized = normalize(code)
    return len(normalized) == CODE_LENGTH and all(ch in ALPHABET for ch in normalized)


def _format(raw: str) -> str:
    return "-".join(raw[i:i + GROUP_SIZE] for i in range(0, len(raw), GROUP_SIZE))


def generate(count: Optional[int] = None) -> List[str]:
    """
    Generate a batch of distinct backup codes.

    Args:
        count: Number of codes (default ``settings.MFA_BACKUP_CODE_COUNT``).

    Returns:
        Plain codes formatted as ``XXXXX-XXXXX``.
    """
    if count is None:
        count = settings.MFA_BACKUP_CODE_COUNT
    if count < 1:
        raise ValueError("count must be positive")

    seen = set()
    codes = []
    while len(codes) < count:
        raw = "".join(secrets.choice(ALPHABET) for _ in range(CODE_LENGTH))
        if raw in seen:
            continue
        seen.add(raw)
        codes.append(_format(raw))
    return codes


def hash_code(code: str) -> str:
    """Bcrypt hash of the normalized code, fresh salt per code."""
    salt = bcrypt.gensalt(rounds=settings.BACKUP_CODE_BCRYPT_ROUNDS)
    return bcrypt.hashpw(normalize(code).encode("utf-8"), salt).decode("utf-8")


def hash_codes(codes: Iterable[str]) -> List[str]:
    return [hash_code(code) for code in codes]


def verify_code(code: str, code_hash: str) -> bool:
    try:
        return bcrypt.checkpw(normalize(code).encode("utf-8"), code_hash.encode("utf-8"))
    except ValueError:
        # Corrupt hash in storage never matches
        return False


def find_match(code: str, hashes: Sequence[str]) -> Optional[int]:
    """
    Return the index of the hash matching ``code``, or None.

    Every hash is checked even after a match so the time taken does not tell
    which position matched.
    """
    match = None
    for index, code_hash in enumerate(hashes):
        if verify_code(code, code_hash) and match is None:
            match = index
    return match
