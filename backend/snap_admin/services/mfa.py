"""MFA coordinator — enrollment state machine and the login-time challenge.

States are derived from the admin row::

    DISABLED  --enroll-->  PENDING_ENROLLMENT  --confirm(valid TOTP)-->  ENABLED
        ^                        |  ^                                      |
        |                        +--+ enroll again (fresh secret/codes)    |
        +-------------------------------- disable ------------------------+

Every write is conditional on ``mfa_revision`` so two concurrent requests
cannot interleave into a mixed flag combination.
"""
import enum
from dataclasses import dataclass
from typing import List, Optional

from snap_admin.config import settings
from snap_admin.errors import AuthenticationError, ConflictError, StateError, ValidationError
from snap_admin.middleware.monitoring import record_mfa_event
from snap_admin.models.admin import Admin
from snap_admin.store import CredentialStore
from snap_admin.utils import backup_codes, totp
from snap_admin.utils.logger import logger


class MFAState(str, enum.Enum):
    DISABLED = "DISABLED"
    PENDING_ENROLLMENT = "PENDING_ENROLLMENT"
    ENABLED = "ENABLED"


@dataclass(frozen=True)
class Enrollment:
    """Returned once to the admin; nothing here is logged."""

    secret: str
    provisioning_uri: str
    qr_code: str
    backup_codes: List[str]

    def __repr__(self) -> str:
        return f"Enrollment(backup_codes={len(self.backup_codes)})"


def mfa_state(admin: Admin) -> MFAState:
    """Derive the MFA state, failing closed on inconsistent rows.

    Raises:
        StateError: flags set without a secret, or enabled and verified
            disagreeing. Indicates corrupted data.
    """
    has_secret = bool(admin.mfa_secret)
    enabled, verified = bool(admin.mfa_enabled), bool(admin.mfa_verified)

    if (enabled or verified) and not has_secret:
        raise StateError(f"Admin {admin.admin_id} has MFA flags set without a secret")
    if enabled != verified:
        raise StateError(f"Admin {admin.admin_id} has mfa_enabled={enabled} but mfa_verified={verified}")

    if enabled:
        return MFAState.ENABLED
    if has_secret:
        return MFAState.PENDING_ENROLLMENT
    return MFAState.DISABLED


class BackupCodeManager:
    """Single-use recovery codes on top of the credential store"""

    def __init__(self, store: CredentialStore):
        self.store = store

    def consume(self, admin: Admin, submitted_code: str) -> bool:
        """Spend a backup code. Succeeds at most once per code."""
        stored = self.store.find_unconsumed_backup_codes(admin)
        index = backup_codes.find_match(submitted_code, [row.code_hash for row in stored])
        if index is None:
            return False
        return self.store.consume_backup_code(stored[index].id)

    def remaining(self, admin: Admin) -> int:
        return len(self.store.find_unconsumed_backup_codes(admin))


class MFACoordinator:
    def __init__(self, store: CredentialStore, issuer: Optional[str] = None):
        self.store = store
        self.issuer = issuer or settings.MFA_ISSUER
        self.backup_codes = BackupCodeManager(store)

    def _load(self, admin_id: str) -> Admin:
        admin = self.store.find_admin_by_id(admin_id)
        if admin is None:
            raise StateError(f"Admin {admin_id} vanished during an MFA operation")
        return admin

    # ------------------------------------------------------------------
    # Enrollment
    # ------------------------------------------------------------------

    def enroll(self, admin_id: str) -> Enrollment:
        """Provision a fresh secret and backup codes; MFA stays off until confirmed."""
        admin = self._load(admin_id)
        state = mfa_state(admin)
        if state == MFAState.ENABLED:
            raise ValidationError("MFA is already enabled; disable it before enrolling again")

        secret = totp.generate_secret()
        codes = backup_codes.generate()
        written = self.store.update_admin_mfa(
            admin.admin_id,
            admin.mfa_revision,
            secret=secret,
            enabled=False,
            verified=False,
            backup_code_hashes=backup_codes.hash_codes(codes),
        )
        if not written:
            raise ConflictError("MFA settings changed concurrently; retry enrollment")

        record_mfa_event("enroll")
        logger.info("MFA enrollment started", extra={"admin_id": admin.admin_id, "action": "mfa_enroll"})

        uri = totp.provisioning_uri(secret, admin.email, self.issuer)
        return Enrollment(
            secret=secret,
            provisioning_uri=uri,
            qr_code=totp.qr_code_data_uri(uri),
            backup_codes=codes,
        )

    def confirm(self, admin_id: str, code: str) -> bool:
        """Turn MFA on if ``code`` is valid for the pending secret.

        A wrong code returns False and leaves the enrollment pending.
        """
        admin = self._load(admin_id)
        state = mfa_state(admin)
        if state == MFAState.ENABLED:
            return True
        if state == MFAState.DISABLED:
            raise ValidationError("MFA enrollment has not been started")

        if not totp.verify(admin.mfa_secret, code):
            record_mfa_event("confirm_rejected")
            logger.info("MFA confirmation rejected", extra={"admin_id": admin.admin_id, "action": "mfa_confirm"})
            return False

        written = self.store.update_admin_mfa(
            admin.admin_id,
            admin.mfa_revision,
            enabled=True,
            verified=True,
            require_secret=True,
        )
        if not written:
            # Lost a race: report whatever the winning request left behind
            return mfa_state(self._load(admin_id)) == MFAState.ENABLED

        record_mfa_event("enabled")
        logger.info("MFA enabled", extra={"admin_id": admin.admin_id, "action": "mfa_confirm"})
        return True

    def disable(self, admin_id: str) -> None:
        """Clear the secret, both flags and every backup code."""
        admin = self._load(admin_id)
        if not admin.mfa_secret and not admin.mfa_enabled and not admin.mfa_verified:
            return

        written = self.store.update_admin_mfa(
            admin.admin_id,
            admin.mfa_revision,
            secret=None,
            enabled=False,
            verified=False,
            backup_code_hashes=[],
        )
        if not written:
            raise ConflictError("MFA settings changed concurrently; retry")

        record_mfa_event("disabled")
        logger.info("MFA disabled", extra={"admin_id": admin.admin_id, "action": "mfa_disable"})

    def regenerate_backup_codes(self, admin_id: str, code: str) -> List[str]:
        """Replace the backup-code batch; needs a current TOTP code."""
        admin = self._load(admin_id)
        if mfa_state(admin) != MFAState.ENABLED:
            raise ValidationError("MFA is not enabled")
        if not totp.verify(admin.mfa_secret, code):
            raise AuthenticationError()

        codes = backup_codes.generate()
        written = self.store.update_admin_mfa(
            admin.admin_id,
            admin.mfa_revision,
            backup_code_hashes=backup_codes.hash_codes(codes),
            require_secret=True,
        )
        if not written:
            raise ConflictError("MFA settings changed concurrently; retry")

        record_mfa_event("backup_codes_regenerated")
        logger.info("Backup codes regenerated", extra={"admin_id": admin.admin_id, "action": "mfa_backup_codes"})
        return codes

    # ------------------------------------------------------------------
    # Login challenge
    # ------------------------------------------------------------------

    def challenge(self, admin: Admin, code: str) -> bool:
        """Check a login-time second factor: a TOTP code or an unused backup code.

        Raises:
            ValidationError: ``code`` is neither six digits nor a backup code.
            StateError: MFA is not in the ENABLED state.
        """
        if mfa_state(admin) != MFAState.ENABLED:
            raise StateError(f"MFA challenge requested for admin {admin.admin_id} without MFA enabled")

        if backup_codes.looks_like_backup_code(code):
            passed = self.backup_codes.consume(admin, code)
            record_mfa_event("backup_code_accepted" if passed else "challenge_rejected")
            if passed:
                logger.info("Backup code consumed", extra={"admin_id": admin.admin_id, "action": "mfa_challenge"})
            return passed

        passed = totp.verify(admin.mfa_secret, code)
        record_mfa_event("totp_accepted" if passed else "challenge_rejected")
        return passed

    def status(self, admin: Admin) -> dict:
        state = mfa_state(admin)
        return {
            "state": state.value,
            "enabled": state == MFAState.ENABLED,
            "backup_codes_remaining": self.backup_codes.remaining(admin) if state == MFAState.ENABLED else 0,
        }
