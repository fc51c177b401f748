"""
auth/verifier.py -- Credential Verifier: decides whether a login attempt passes.

The verifier is a pure decision function over (configuration, attempt, time).
It performs no I/O and holds no mutable state, so a single instance is shared
by every request and may run in worker threads concurrently.

Policy:
  1. Shape check first. Every active factor needs a non-empty string; the code
     must be exactly `digits` ASCII digits. Anything else is BAD_INPUT and no
     comparison runs.
  2. Every active factor is evaluated -- no short-circuit after the first
     failure -- so a wrong password and a wrong code cost the same time.
  3. Any failure collapses to INVALID_CREDENTIALS. The caller never learns
     which factor was wrong (factor-oracle resistance).

Fields for factors that are not active are ignored.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from auth import totp
from auth.models import FailureKind, LoginAttempt, VerificationResult
from auth.tokens import BCRYPT_MAX_BYTES, verify_password

if TYPE_CHECKING:
    from core.config import Settings


class ConfigurationError(Exception):
    """Raised when the verifier cannot be built from the supplied configuration."""


class CredentialVerifier:
    def __init__(
        self,
        *,
        password_hash: str | None = None,
        totp_secret: str | None = None,
        totp_step: int = 30,
        totp_window: int = 1,
        totp_digits: int = 6,
    ) -> None:
        if not password_hash and not totp_secret:
            raise ConfigurationError("At least one credential factor must be configured.")
        self._password_hash = password_hash or None
        self._totp_secret = totp_secret or None
        self._totp_step = totp_step
        self._totp_window = totp_window
        self._totp_digits = totp_digits

    @classmethod
    def from_settings(cls, settings: Settings) -> CredentialVerifier:
        """Build a verifier with exactly the factors Settings marks active."""
        factors = settings.active_factors
        return cls(
            password_hash=settings.password_hash if "password" in factors else None,
            totp_secret=settings.totp_secret if "totp" in factors else None,
            totp_step=settings.totp_step,
            totp_window=settings.totp_window,
            totp_digits=settings.totp_digits,
        )

    @property
    def factors(self) -> tuple[str, ...]:
        factors: list[str] = []
        if self._password_hash:
            factors.append("password")
        if self._totp_secret:
            factors.append("totp")
        return tuple(factors)

    def verify(self, attempt: LoginAttempt, now: float | None = None) -> VerificationResult:
        """Check `attempt` against every active factor.

        Args:
            attempt: Raw fields from the client.
            now:     Unix time used for the TOTP step. None means the current time.

        Exceptions from the hashing library propagate; the route layer logs
        them and answers 500.
        """
        password = code = None
        if self._password_hash:
            password = _clean_password(attempt.password)
            if password is None:
                return VerificationResult.failed(FailureKind.BAD_INPUT)
        if self._totp_secret:
            code = _clean_code(attempt.code, self._totp_digits)
            if code is None:
                return VerificationResult.failed(FailureKind.BAD_INPUT)

        passed = True
        if password is not None:
            passed &= verify_password(password, self._password_hash)
        if code is not None:
            passed &= totp.verify_code(
                self._totp_secret,
                code,
                step=self._totp_step,
                window=self._totp_window,
                digits=self._totp_digits,
                now=now,
            )

        if not passed:
            return VerificationResult.failed(FailureKind.INVALID_CREDENTIALS)
        return VerificationResult.ok()


def _clean_password(value: Any) -> str | None:
    if not isinstance(value, str) or not value.strip():
        return None
    if len(value.encode("utf-8")) > BCRYPT_MAX_BYTES:
        return None
    return value


def _clean_code(value: Any, digits: int) -> str | None:
    if not isinstance(value, str):
        return None
    code = value.strip().replace(" ", "")
    if len(code) != digits or not (code.isascii() and code.isdigit()):
        return None
    return code
