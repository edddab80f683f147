"""
TOTP (RFC 6238) utilities for admin multi-factor authentication.

Codes are 6 digits, HMAC-SHA1, 30 second step: the defaults of every
authenticator app. Verification accepts the current step and exactly one
step either side to absorb clock drift between phone and server.
"""
import base64
import hmac
import io
from datetime import datetime
from typing import Optional, Union

import pyotp
import qrcode

from snap_admin.errors import ValidationError

CODE_DIGITS = 6
STEP_SECONDS = 30
VALID_WINDOW = 1  # steps either side of "now"

ForTime = Union[int, float, datetime]


def generate_secret() -> str:
    """
    Generate a new TOTP secret for MFA enrollment.

    Returns:
        Base32-encoded secret (32 characters, 160 bits).
    """
    return pyotp.random_base32()


def _totp(secret: str) -> pyotp.TOTP:
    return pyotp.TOTP(secret, digits=CODE_DIGITS, interval=STEP_SECONDS)


def normalize_code(code: Optional[str]) -> str:
    """
    Strip separators from a submitted code and check its shape.

    Raises:
        ValidationError: if the result is not exactly six ASCII digits.
    """
    cleaned = (code or "").replace(" ", "").replace("-", "")
    if len(cleaned) != CODE_DIGITS or not (cleaned.isascii() and cleaned.isdigit()):
        raise ValidationError(f"MFA code must be {CODE_DIGITS} digits")
    return cleaned


def current_code(secret: str, for_time: Optional[ForTime] = None) -> str:
    """Return the code valid at ``for_time`` (default: now)."""
    totp = _totp(secret)
    if for_time is None:
        return totp.now()
    return totp.at(for_time)


def verify(secret: str, code: str, for_time: Optional[ForTime] = None) -> bool:
    """
    Verify a TOTP code against the secret.

    Every candidate step is computed and compared in constant time, so the
    work done does not depend on which step (if any) matched.

    Raises:
        ValidationError: if ``code`` is not six digits. Checked before any HMAC.
    """
    submitted = normalize_code(code)
    if not secret:
        return False

    if for_time is None:
        for_time = datetime.now()
    totp = _totp(secret)

    matched = False
    for offset in range(-VALID_WINDOW, VALID_WINDOW + 1):
        candidate = totp.at(for_time, counter_offset=offset)
        matched |= hmac.compare_digest(candidate.encode(), submitted.encode())
    return matched


def provisioning_uri(secret: str, account_name: str, issuer: str) -> str:
    """
    Build the otpauth:// URI authenticator apps scan.

    Args:
        secret: Base32-encoded TOTP secret.
        account_name: Shown in the app next to the issuer (the admin's email).
        issuer: Application name.
    """
    return _totp(secret).provisioning_uri(name=account_name, issuer_name=issuer)


def qr_code_data_uri(uri: str) -> str:
    """Render the provisioning URI as a base64 PNG data URI."""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(uri)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    b64 = base64.b64encode(buffer.getvalue()).decode("utf-8")
    return f"data:image/png;base64,{b64}"
