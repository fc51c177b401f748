"""
auth/tokens.py -- Password hashing, session token minting, and cookie helpers.

Security design decisions:
  Passwords: bcrypt directly (no passlib wrapper). bcrypt.checkpw re-hashes the
       candidate with the stored salt and compares the digests in constant
       time, so response time does not reveal how much of the password matched.
       bcrypt refuses inputs longer than 72 bytes; the verifier rejects those
       as bad input before they reach checkpw.

  Session tokens: secrets.token_hex(32) gives 256 bits of entropy. The token is
       opaque -- it carries no claims and is only meaningful as a key into the
       in-memory SessionStore, so revoking it server-side is immediate.

  Cookie: httpOnly (no script access), SameSite=lax (not sent on cross-site
       POST), Secure in production. Max-Age only when a server-side TTL exists;
       otherwise the browser drops the cookie when the session ends.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import secrets

import bcrypt
from starlette.responses import Response

COOKIE_NAME = "auth_token"
BCRYPT_MAX_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int = 12) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Used by the `hash-password` CLI command to produce PASSWORD_HASH; the
    server itself never hashes at runtime.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Exceptions from bcrypt (corrupt hash, oversize input) are not swallowed:
    they indicate a server-side problem and the route layer maps them to 500.
    """
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


def generate_session_token() -> str:
    """Return a new opaque session token (64 hex chars, 256 bits)."""
    return secrets.token_hex(32)


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response: Response, token: str, *, secure: bool, max_age: int = 0) -> None:
    """Write the session token as an httpOnly cookie on the response.

    Args:
        response: Starlette/FastAPI response object.
        token:    Opaque token from SessionStore.issue().
        secure:   Settings.secure_cookies -- True in production.
        max_age:  Cookie lifetime in seconds. 0 (default) omits Max-Age so the
                  cookie is scoped to the browser session, matching a store
                  with no TTL.
    """
    response.set_cookie(
        COOKIE_NAME,
        value=token,
        max_age=max_age if max_age > 0 else None,
        path="/",
        httponly=True,
        samesite="lax",
        secure=secure,
    )


def clear_auth_cookie(response: Response, *, secure: bool) -> None:
    """Expire the session cookie. Attributes must match set_auth_cookie()."""
    response.delete_cookie(
        COOKIE_NAME,
        path="/",
        httponly=True,
        samesite="lax",
        secure=secure,
    )
