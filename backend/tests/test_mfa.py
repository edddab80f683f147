"""Tests for the MFA state machine and backup code consumption"""
import threading

import pytest
from sqlalchemy.orm import sessionmaker

from snap_admin.errors import AuthenticationError, StateError, ValidationError
from snap_admin.models.admin import BackupCode
from snap_admin.services.mfa import BackupCodeManager, MFACoordinator, MFAState, mfa_state
from snap_admin.store import CredentialStore
from snap_admin.utils import backup_codes, totp


def _wrong_code(secret: str) -> str:
    """A well-formed code that is not valid in the current window"""
    candidate = 0
    while totp.verify(secret, f"{candidate:06d}"):
        candidate += 1
    return f"{candidate:06d}"


def _backup_rows(db, admin):
    return db.query(BackupCode).filter(BackupCode.admin_pk == admin.id).all()


@pytest.fixture
def coordinator(store) -> MFACoordinator:
    return MFACoordinator(store)


@pytest.fixture
def enabled_admin(make_admin, coordinator, store):
    """Admin with MFA fully enabled; returns (admin, enrollment)"""
    admin = make_admin()
    enrollment = coordinator.enroll(admin.admin_id)
    assert coordinator.confirm(admin.admin_id, totp.current_code(enrollment.secret)) is True
    return store.find_admin_by_id(admin.admin_id), enrollment


def test_new_admin_is_disabled(make_admin):
    assert mfa_state(make_admin()) == MFAState.DISABLED


def test_enroll_moves_to_pending(make_admin, coordinator, store, db):
    admin = make_admin()
    enrollment = coordinator.enroll(admin.admin_id)

    admin = store.find_admin_by_id(admin.admin_id)
    assert mfa_state(admin) == MFAState.PENDING_ENROLLMENT
    assert admin.mfa_secret == enrollment.secret
    assert admin.mfa_enabled is False
    assert enrollment.provisioning_uri.startswith("otpauth://totp/")
    assert enrollment.qr_code.startswith("data:image/png;base64,")
    assert len(enrollment.backup_codes) == 10

    rows = _backup_rows(db, admin)
    assert len(rows) == 10
    stored = [row.code_hash for row in rows]
    for code in enrollment.backup_codes:
        assert code not in stored
        assert backup_codes.find_match(code, stored) is not None


def test_enrollment_repr_hides_secrets(make_admin, coordinator):
    enrollment = coordinator.enroll(make_admin().admin_id)
    assert enrollment.secret not in repr(enrollment)
    assert enrollment.backup_codes[0] not in repr(enrollment)


def test_confirm_with_correct_code_enables(make_admin, coordinator, store):
    admin = make_admin()
    enrollment = coordinator.enroll(admin.admin_id)

    assert coordinator.confirm(admin.admin_id, totp.current_code(enrollment.secret)) is True
    admin = store.find_admin_by_id(admin.admin_id)
    assert mfa_state(admin) == MFAState.ENABLED
    assert admin.mfa_verified is True


def test_confirm_with_wrong_code_stays_pending(make_admin, coordinator, store):
    admin = make_admin()
    enrollment = coordinator.enroll(admin.admin_id)

    assert coordinator.confirm(admin.admin_id, _wrong_code(enrollment.secret)) is False
    assert mfa_state(store.find_admin_by_id(admin.admin_id)) == MFAState.PENDING_ENROLLMENT


def test_confirm_with_malformed_code_raises(make_admin, coordinator):
    admin = make_admin()
    coordinator.enroll(admin.admin_id)
    with pytest.raises(ValidationError):
        coordinator.confirm(admin.admin_id, "12ab")


def test_confirm_without_enrollment_raises(make_admin, coordinator):
    with pytest.raises(ValidationError):
        coordinator.confirm(make_admin().admin_id, "123456")


def test_confirm_when_enabled_is_a_no_op(enabled_admin, coordinator):
    admin, enrollment = enabled_admin
    assert coordinator.confirm(admin.admin_id, totp.current_code(enrollment.secret)) is True


def test_enroll_when_enabled_raises(enabled_admin, coordinator):
    admin, _ = enabled_admin
    with pytest.raises(ValidationError):
        coordinator.enroll(admin.admin_id)


def test_reenroll_from_pending_replaces_secret_and_codes(make_admin, coordinator, store, db):
    admin = make_admin()
    first = coordinator.enroll(admin.admin_id)
    second = coordinator.enroll(admin.admin_id)

    admin = store.find_admin_by_id(admin.admin_id)
    assert admin.mfa_secret == second.secret != first.secret
    stored = [row.code_hash for row in _backup_rows(db, admin)]
    assert len(stored) == 10
    assert backup_codes.find_match(first.backup_codes[0], stored) is None


def test_disable_clears_secret_and_codes(enabled_admin, coordinator, store, db):
    admin, _ = enabled_admin
    coordinator.disable(admin.admin_id)

    admin = store.find_admin_by_id(admin.admin_id)
    assert mfa_state(admin) == MFAState.DISABLED
    assert admin.mfa_secret is None
    assert admin.mfa_enabled is False and admin.mfa_verified is False
    assert _backup_rows(db, admin) == []


def test_disable_when_disabled_is_idempotent(make_admin, coordinator, store):
    admin = make_admin()
    revision = admin.mfa_revision
    coordinator.disable(admin.admin_id)
    assert store.find_admin_by_id(admin.admin_id).mfa_revision == revision


def test_every_write_bumps_revision(make_admin, coordinator, store):
    admin = make_admin()
    start = admin.mfa_revision
    enrollment = coordinator.enroll(admin.admin_id)
    coordinator.confirm(admin.admin_id, totp.current_code(enrollment.secret))
    coordinator.disable(admin.admin_id)
    assert store.find_admin_by_id(admin.admin_id).mfa_revision == start + 3


def test_stale_revision_write_is_refused(make_admin, store):
    admin = make_admin()
    stale = admin.mfa_revision
    assert store.update_admin_mfa(admin.admin_id, stale, secret=totp.generate_secret()) is True
    assert store.update_admin_mfa(admin.admin_id, stale, secret=None) is False
    assert store.find_admin_by_id(admin.admin_id).mfa_secret is not None


@pytest.mark.parametrize("secret,enabled,verified", [
    (None, True, True),
    (None, False, True),
    ("JBSWY3DPEHPK3PXP", True, False),
    ("JBSWY3DPEHPK3PXP", False, True),
])
def test_inconsistent_rows_fail_closed(make_admin, db, secret, enabled, verified):
    admin = make_admin()
    admin.mfa_secret = secret
    admin.mfa_enabled = enabled
    admin.mfa_verified = verified
    db.commit()

    with pytest.raises(StateError):
        mfa_state(admin)


# ---------------------------------------------------------------------------
# Login challenge and backup codes
# ---------------------------------------------------------------------------

def test_challenge_accepts_current_totp(enabled_admin, coordinator):
    admin, enrollment = enabled_admin
    assert coordinator.challenge(admin, totp.current_code(enrollment.secret)) is True


def test_challenge_rejects_wrong_totp(enabled_admin, coordinator):
    admin, enrollment = enabled_admin
    assert coordinator.challenge(admin, _wrong_code(enrollment.secret)) is False


def test_backup_code_is_single_use(enabled_admin, coordinator, store):
    admin, enrollment = enabled_admin
    code = enrollment.backup_codes[0]

    assert coordinator.challenge(admin, code) is True
    assert coordinator.challenge(admin, code) is False
    # Other codes are untouched
    assert coordinator.challenge(admin, enrollment.backup_codes[1]) is True
    assert coordinator.backup_codes.remaining(admin) == 8


def test_every_backup_code_works_exactly_once(enabled_admin, coordinator):
    admin, enrollment = enabled_admin
    for code in enrollment.backup_codes:
        assert coordinator.backup_codes.consume(admin, code) is True
    for code in enrollment.backup_codes:
        assert coordinator.backup_codes.consume(admin, code) is False
    assert coordinator.backup_codes.remaining(admin) == 0


def test_consume_backup_code_row_succeeds_once(enabled_admin, store):
    admin, _ = enabled_admin
    row = store.find_unconsumed_backup_codes(admin)[0]
    assert store.consume_backup_code(row.id) is True
    assert store.consume_backup_code(row.id) is False


def test_challenge_requires_enabled_mfa(make_admin, coordinator):
    with pytest.raises(StateError):
        coordinator.challenge(make_admin(), "123456")


def test_regenerate_backup_codes(enabled_admin, coordinator):
    admin, enrollment = enabled_admin
    new_codes = coordinator.regenerate_backup_codes(admin.admin_id, totp.current_code(enrollment.secret))

    assert len(new_codes) == 10
    assert set(new_codes).isdisjoint(enrollment.backup_codes)
    assert coordinator.backup_codes.consume(admin, enrollment.backup_codes[0]) is False
    assert coordinator.backup_codes.consume(admin, new_codes[0]) is True


def test_regenerate_backup_codes_needs_valid_totp(enabled_admin, coordinator):
    admin, enrollment = enabled_admin
    with pytest.raises(AuthenticationError):
        coordinator.regenerate_backup_codes(admin.admin_id, _wrong_code(enrollment.secret))


def test_regenerate_backup_codes_needs_enabled_mfa(make_admin, coordinator):
    with pytest.raises(ValidationError):
        coordinator.regenerate_backup_codes(make_admin().admin_id, "123456")


def test_status(enabled_admin, coordinator):
    admin, _ = enabled_admin
    assert coordinator.status(admin) == {
        "state": "ENABLED",
        "enabled": True,
        "backup_codes_remaining": 10,
    }


# ---------------------------------------------------------------------------
# Concurrent requests, each on its own database session
# ---------------------------------------------------------------------------

def _race(db, workers: int, work):
    """Run ``work(store)`` on ``workers`` threads released together; returns their results."""
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=db.get_bind())
    barrier = threading.Barrier(workers)
    results = [None] * workers
    errors = []

    def run(slot: int):
        session = session_factory()
        try:
            store = CredentialStore(session)
            barrier.wait()
            results[slot] = work(store)
        except Exception as exc:
            errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=run, args=(slot,)) for slot in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    return results


def test_concurrent_backup_code_use_succeeds_once(enabled_admin, db):
    admin, enrollment = enabled_admin
    code = enrollment.backup_codes[0]

    def use_code(store):
        own_admin = store.find_admin_by_id(admin.admin_id)
        return BackupCodeManager(store).consume(own_admin, code)

    results = _race(db, 8, use_code)
    assert results.count(True) == 1
    assert results.count(False) == 7

    db.expire_all()
    assert BackupCodeManager(CredentialStore(db)).remaining(admin) == 9


def test_concurrent_confirm_writes_once(make_admin, coordinator, store, db):
    admin = make_admin()
    enrollment = coordinator.enroll(admin.admin_id)
    start_revision = store.find_admin_by_id(admin.admin_id).mfa_revision
    code = totp.current_code(enrollment.secret)

    results = _race(db, 2, lambda own_store: MFACoordinator(own_store).confirm(admin.admin_id, code))
    assert results == [True, True]

    db.expire_all()
    admin = store.find_admin_by_id(admin.admin_id)
    assert mfa_state(admin) == MFAState.ENABLED
    assert admin.mfa_revision == start_revision + 1
