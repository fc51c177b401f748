"""
tests/test_verifier.py -- Unit tests for CredentialVerifier.

Coverage:
  - Password-only, TOTP-only, and two-factor policies
  - TOTP window edges (now, +/- one step, outside the window)
  - BAD_INPUT classification: missing, empty, wrong type, malformed code,
    oversize password -- returned before any comparison
  - Non-distinguishability: every failing factor yields the same reason
  - Construction refuses a verifier with no factors

A fixed `now` is passed wherever the TOTP step matters so tests never straddle
a step boundary.
"""

from __future__ import annotations

from unittest.mock import patch

import pyotp
import pytest
from conftest import TEST_PASSWORD, TEST_PASSWORD_HASH, TEST_TOTP_SECRET, make_verifier

from auth.models import FailureKind, LoginAttempt
from auth.verifier import ConfigurationError, CredentialVerifier

NOW = 1_700_000_000.0
TOTP = pyotp.TOTP(TEST_TOTP_SECRET)


def _code(offset_steps: int = 0) -> str:
    return TOTP.at(int(NOW) + offset_steps * 30)


class TestPasswordOnly:
    verifier = CredentialVerifier(password_hash=TEST_PASSWORD_HASH)

    def test_correct_password_succeeds(self) -> None:
        result = self.verifier.verify(LoginAttempt(password=TEST_PASSWORD))
        assert result.success
        assert result.reason is None

    def test_wrong_password_is_invalid(self) -> None:
        result = self.verifier.verify(LoginAttempt(password="hunter3"))
        assert not result.success
        assert result.reason is FailureKind.INVALID_CREDENTIALS

    def test_code_is_ignored_when_totp_not_configured(self) -> None:
        result = self.verifier.verify(LoginAttempt(password=TEST_PASSWORD, code="not a code"))
        assert result.success

    def test_factors(self) -> None:
        assert self.verifier.factors == ("password",)


class TestTotpOnly:
    verifier = CredentialVerifier(totp_secret=TEST_TOTP_SECRET, totp_step=30, totp_window=1)

    def test_current_code_succeeds(self) -> None:
        assert self.verifier.verify(LoginAttempt(code=_code()), now=NOW).success

    @pytest.mark.parametrize("offset", [-1, 1])
    def test_adjacent_step_within_window_succeeds(self, offset: int) -> None:
        assert self.verifier.verify(LoginAttempt(code=_code(offset)), now=NOW).success

    @pytest.mark.parametrize("offset", [-2, 2])
    def test_step_outside_window_fails(self, offset: int) -> None:
        result = self.verifier.verify(LoginAttempt(code=_code(offset)), now=NOW)
        assert result.reason is FailureKind.INVALID_CREDENTIALS

    def test_zero_window_accepts_only_current_step(self) -> None:
        strict = CredentialVerifier(totp_secret=TEST_TOTP_SECRET, totp_window=0)
        assert strict.verify(LoginAttempt(code=_code()), now=NOW).success
        assert not strict.verify(LoginAttempt(code=_code(1)), now=NOW).success

    def test_code_with_spaces_is_normalized(self) -> None:
        code = _code()
        spaced = f" {code[:3]} {code[3:]} "
        assert self.verifier.verify(LoginAttempt(code=spaced), now=NOW).success

    def test_password_is_ignored_when_not_configured(self) -> None:
        assert self.verifier.verify(LoginAttempt(password=None, code=_code()), now=NOW).success

    def test_custom_step_and_digits(self) -> None:
        verifier = CredentialVerifier(totp_secret=TEST_TOTP_SECRET, totp_step=60, totp_digits=8)
        code = pyotp.TOTP(TEST_TOTP_SECRET, digits=8, interval=60).at(int(NOW))
        assert verifier.verify(LoginAttempt(code=code), now=NOW).success
        assert not verifier.verify(LoginAttempt(code=_code()), now=NOW).success


class TestTwoFactor:
    verifier = make_verifier()

    def test_both_correct_succeeds(self) -> None:
        result = self.verifier.verify(LoginAttempt(password=TEST_PASSWORD, code=_code()), now=NOW)
        assert result.success

    def test_failures_are_indistinguishable(self) -> None:
        """Wrong password, wrong code, and both wrong all yield the same reason."""
        wrong_password = self.verifier.verify(LoginAttempt(password="wrong", code=_code()), now=NOW)
        wrong_code = self.verifier.verify(LoginAttempt(password=TEST_PASSWORD, code="000000"), now=NOW)
        both_wrong = self.verifier.verify(LoginAttempt(password="wrong", code="000000"), now=NOW)
        assert wrong_password == wrong_code == both_wrong
        assert wrong_password.reason is FailureKind.INVALID_CREDENTIALS

    def test_both_factors_evaluated_when_password_fails(self) -> None:
        """No short-circuit: the TOTP check still runs after a bad password."""
        with patch("auth.verifier.totp.verify_code", return_value=True) as spy:
            self.verifier.verify(LoginAttempt(password="wrong", code="123456"), now=NOW)
        spy.assert_called_once()

    def test_missing_code_is_bad_input(self) -> None:
        result = self.verifier.verify(LoginAttempt(password=TEST_PASSWORD), now=NOW)
        assert result.reason is FailureKind.BAD_INPUT

    def test_missing_password_is_bad_input(self) -> None:
        result = self.verifier.verify(LoginAttempt(code=_code()), now=NOW)
        assert result.reason is FailureKind.BAD_INPUT

    def test_factors(self) -> None:
        assert self.verifier.factors == ("password", "totp")


class TestBadInput:
    verifier = make_verifier()

    @pytest.mark.parametrize(
        "password",
        [None, "", "   ", 123, ["hunter2"], {"p": 1}, "x" * 73, "é" * 37],
        ids=["none", "empty", "blank", "int", "list", "dict", "73-bytes", "74-utf8-bytes"],
    )
    def test_malformed_password(self, password) -> None:
        result = self.verifier.verify(LoginAttempt(password=password, code=_code()), now=NOW)
        assert result.reason is FailureKind.BAD_INPUT

    @pytest.mark.parametrize(
        "code",
        [None, "", 123456, "12345", "1234567", "12a456", "١٢٣٤٥٦"],
        ids=["none", "empty", "int", "short", "long", "alpha", "non-ascii-digits"],
    )
    def test_malformed_code(self, code) -> None:
        result = self.verifier.verify(LoginAttempt(password=TEST_PASSWORD, code=code), now=NOW)
        assert result.reason is FailureKind.BAD_INPUT

    def test_bad_input_skips_comparison(self) -> None:
        with patch("auth.verifier.verify_password") as pw, patch("auth.verifier.totp.verify_code") as code:
            self.verifier.verify(LoginAttempt(password="", code=_code()), now=NOW)
        pw.assert_not_called()
        code.assert_not_called()

    def test_seventy_two_byte_password_is_accepted_shape(self) -> None:
        result = self.verifier.verify(LoginAttempt(password="x" * 72, code=_code()), now=NOW)
        assert result.reason is FailureKind.INVALID_CREDENTIALS


class TestConstruction:
    def test_no_factor_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            CredentialVerifier()

    def test_empty_strings_count_as_absent(self) -> None:
        with pytest.raises(ConfigurationError):
            CredentialVerifier(password_hash="", totp_secret="")

    def test_library_errors_propagate(self) -> None:
        """A corrupt hash is a server fault, not a failed login."""
        verifier = CredentialVerifier(password_hash="$2b$04$corrupt")
        with pytest.raises(ValueError):
            verifier.verify(LoginAttempt(password=TEST_PASSWORD))

    def test_deterministic(self) -> None:
        verifier = make_verifier()
        attempt = LoginAttempt(password=TEST_PASSWORD, code=_code())
        assert verifier.verify(attempt, now=NOW) == verifier.verify(attempt, now=NOW)
