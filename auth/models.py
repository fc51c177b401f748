"""
auth/models.py -- Domain types for the authentication core.

Pattern: Data class (pure data container, zero logic). The verifier, store,
and gate do the work; these types only carry shape between them and the
route layer.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class FailureKind(str, Enum):
    """Why a login attempt was refused.

    INVALID_CREDENTIALS is deliberately a single value for every factor: the
    caller must not be able to tell a wrong password from a wrong code.
    """

    BAD_INPUT = "bad_input"
    INVALID_CREDENTIALS = "invalid_credentials"


class Decision(str, Enum):
    """Outcome of one Access Gate check."""

    ALLOWED = "allowed"
    DENIED = "denied"


@dataclass(frozen=True)
class LoginAttempt:
    """Raw credentials as submitted by the client.

    Fields are typed Any on purpose: the verifier, not the transport, decides
    whether a value is well-formed, so direct callers get the same BAD_INPUT
    classification as HTTP clients.
    """

    password: Any = None
    code: Any = None


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    reason: FailureKind | None = None

    @classmethod
    def ok(cls) -> VerificationResult:
        return cls(success=True)

    @classmethod
    def failed(cls, reason: FailureKind) -> VerificationResult:
        return cls(success=False, reason=reason)
