"""
auth/totp.py -- Time-based one-time codes (RFC 6238) via pyotp.

Codes are a deterministic function of (secret, time, step width): the same
secret and the same time step always produce the same code. Verification
accepts the current step plus `window` steps on either side to absorb clock
drift between the authenticator app and the server. pyotp compares candidate
and expected codes with hmac.compare_digest.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import time

import pyotp


def new_secret() -> str:
    """Return a fresh 160-bit base32 shared secret."""
    return pyotp.random_base32(length=32)


def _totp(secret: str, step: int, digits: int) -> pyotp.TOTP:
    return pyotp.TOTP(secret, digits=digits, interval=step)


def code_at(secret: str, for_time: float, step: int = 30, digits: int = 6) -> str:
    """Return the code for the time step containing `for_time` (unix seconds)."""
    return _totp(secret, step, digits).at(int(for_time))


def verify_code(
    secret: str,
    code: str,
    *,
    step: int = 30,
    window: int = 1,
    digits: int = 6,
    now: float | None = None,
) -> bool:
    """Return True if `code` matches any step in [now - window, now + window]."""
    for_time = int(time.time() if now is None else now)
    return _totp(secret, step, digits).verify(code, for_time=for_time, valid_window=window)


def provisioning_uri(secret: str, name: str, issuer: str, step: int = 30, digits: int = 6) -> str:
    """Return the otpauth:// URI an authenticator app can import (usually as a QR code)."""
    return _totp(secret, step, digits).provisioning_uri(name=name, issuer_name=issuer)
