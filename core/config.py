"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for SiteGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. password_hash -> PASSWORD_HASH). Type coercion is built in.

  @model_validator(mode="after"): Cross-field validation once every field is
      resolved. This is where the fail-fast rules live: a factor that AUTH_MODE
      requires but the environment does not supply is a startup error, never a
      silently open gate.

Security notes:
  [F1] At least one factor (password hash or TOTP secret) must be active.
  [F2] PASSWORD_HASH must look like a bcrypt hash. A typo'd hash would make
       every login fail with a 500 at request time instead of at startup.
  [F3] TOTP_SECRET must be base32 and carry at least 80 bits.
  [F4] SITE_DIR may not live inside PUBLIC_DIR, or the public catch-all route
       would serve protected files without passing the gate.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
or auth/.
"""

import base64
import binascii
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("sitegate.config")

_BCRYPT_RE = re.compile(r"^\$2[aby]\$\d{2}\$[./A-Za-z0-9]{53}$")
_MIN_TOTP_SECRET_BYTES = 10  # 80 bits


def normalize_totp_secret(secret: str) -> str:
    """Strip spaces and uppercase a base32 secret as authenticator apps display it."""
    return secret.replace(" ", "").strip().upper()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults except the credential factors: at least one of
    PASSWORD_HASH / TOTP_SECRET must be set or Settings() raises.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    environment: str = "development"
    host: str = "0.0.0.0"  # nosec B104 -- container deployments bind all interfaces
    port: int = 10000

    # ------------------------------------------------------------------
    # Credential factors
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured".
    password_hash: str = ""
    totp_secret: str = ""
    totp_step: int = 30
    totp_window: int = 1
    totp_digits: int = 6
    # "auto" activates every configured factor; the explicit modes require
    # their factors and ignore the others.
    auth_mode: Literal["auto", "password", "totp", "both"] = "auto"

    # ------------------------------------------------------------------
    # Sessions and cookies
    # ------------------------------------------------------------------

    # 0 = browser-session cookie with no server-side TTL.
    session_ttl_seconds: int = 0
    session_purge_interval_seconds: int = 300
    # None = derive from environment (Secure only in production).
    secure_cookies: bool | None = None

    # ------------------------------------------------------------------
    # Static content
    # ------------------------------------------------------------------

    public_dir: Path = Path("public")
    site_dir: Path = Path("site")
    protected_prefix: str = "/protected"
    unauthorized_redirect: bool = False

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    cors_origins: list[str] = []
    allowed_hosts: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("protected_prefix")
    @classmethod
    def validate_prefix(cls, value: str) -> str:
        prefix = "/" + value.strip().strip("/")
        if prefix == "/":
            raise ValueError("PROTECTED_PREFIX must name a sub-path, not the site root.")
        return prefix

    @field_validator("totp_secret")
    @classmethod
    def normalize_secret(cls, value: str) -> str:
        return normalize_totp_secret(value)

    @model_validator(mode="after")
    def validate_auth(self) -> "Settings":
        """Enforce the fail-fast credential policy [F1]-[F4]."""
        wants_password = self.auth_mode in ("password", "both")
        wants_totp = self.auth_mode in ("totp", "both")

        if wants_password and not self.password_hash:
            raise ValueError(f"AUTH_MODE={self.auth_mode} requires PASSWORD_HASH.")
        if wants_totp and not self.totp_secret:
            raise ValueError(f"AUTH_MODE={self.auth_mode} requires TOTP_SECRET.")
        if not self.active_factors:
            raise ValueError("No credential factor configured. Set PASSWORD_HASH and/or TOTP_SECRET.")

        if "password" in self.active_factors and not _BCRYPT_RE.match(self.password_hash):
            raise ValueError("PASSWORD_HASH is not a bcrypt hash ($2a$/$2b$/$2y$).")

        if "totp" in self.active_factors:
            padded = self.totp_secret + "=" * ((8 - len(self.totp_secret) % 8) % 8)
            try:
                raw = base64.b32decode(padded, casefold=True)
            except (binascii.Error, ValueError) as exc:
                raise ValueError("TOTP_SECRET must be base32 encoded.") from exc
            if len(raw) < _MIN_TOTP_SECRET_BYTES:
                raise ValueError("TOTP_SECRET must carry at least 80 bits (16 base32 characters).")
            if self.totp_step <= 0:
                raise ValueError("TOTP_STEP must be positive.")
            if not 0 <= self.totp_window <= 10:
                raise ValueError("TOTP_WINDOW must be between 0 and 10.")
            if not 6 <= self.totp_digits <= 8:
                raise ValueError("TOTP_DIGITS must be between 6 and 8.")

        if self.session_ttl_seconds < 0:
            raise ValueError("SESSION_TTL_SECONDS must be 0 (no TTL) or positive.")
        if self.session_purge_interval_seconds <= 0:
            raise ValueError("SESSION_PURGE_INTERVAL_SECONDS must be positive.")

        site = self.site_dir.resolve()
        public = self.public_dir.resolve()
        if site == public or public in site.parents:
            raise ValueError("SITE_DIR must not be inside PUBLIC_DIR.")

        if self.secure_cookies is None:
            self.secure_cookies = self.environment.lower() == "production"
        if not self.secure_cookies and self.environment.lower() == "production":
            logger.warning("SECURE_COOKIES is off in production; the session cookie will travel over plain HTTP")
        return self

    @property
    def active_factors(self) -> tuple[str, ...]:
        """Return the factors a login must satisfy, in evaluation order."""
        if self.auth_mode == "password":
            return ("password",)
        if self.auth_mode == "totp":
            return ("totp",)
        if self.auth_mode == "both":
            return ("password", "totp")
        factors: list[str] = []
        if self.password_hash:
            factors.append("password")
        if self.totp_secret:
            factors.append("totp")
        return tuple(factors)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
