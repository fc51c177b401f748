"""
tests/conftest.py -- Shared test fixtures for SiteGate.

This module provides:
  - TEST_PASSWORD / TEST_TOTP_SECRET / TEST_PASSWORD_HASH: the credentials the
    default verifier accepts
  - _patch_lifespan(): wires a test verifier, store, and temp asset dirs into
    app.state, bypassing real startup
  - site_dirs: temporary PUBLIC_DIR / SITE_DIR trees with known contents
  - make_client: factory for TestClients with a chosen verifier/store/policy
  - client: (TestClient, SessionStore) with both factors configured

The environment must be populated before any app import: Settings() refuses
to load without a credential factor, and api.main resolves Settings at import.
bcrypt rounds=4 keeps hashing fast; the cost factor does not change semantics.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import ExitStack, asynccontextmanager
from pathlib import Path

import bcrypt
import pyotp

TEST_PASSWORD = "hunter2"
TEST_TOTP_SECRET = "JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP"
TEST_PASSWORD_HASH = bcrypt.hashpw(TEST_PASSWORD.encode(), bcrypt.gensalt(rounds=4)).decode()

# CRITICAL: set before any core/api import so get_settings() succeeds.
os.environ["PASSWORD_HASH"] = TEST_PASSWORD_HASH
os.environ["TOTP_SECRET"] = TEST_TOTP_SECRET
os.environ["AUTH_MODE"] = "auto"
os.environ["ENVIRONMENT"] = "development"
os.environ["LOGIN_RATE_LIMIT"] = "1000/minute"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from asgi import app  # noqa: E402
from auth.gate import AccessGate  # noqa: E402
from auth.sessions import SessionStore  # noqa: E402
from auth.verifier import CredentialVerifier  # noqa: E402


def current_code() -> str:
    return pyotp.TOTP(TEST_TOTP_SECRET).now()


def make_verifier(**overrides) -> CredentialVerifier:
    kwargs = {"password_hash": TEST_PASSWORD_HASH, "totp_secret": TEST_TOTP_SECRET}
    kwargs.update(overrides)
    return CredentialVerifier(**kwargs)


def _patch_lifespan(
    verifier: CredentialVerifier | None,
    store: SessionStore,
    public_dir: Path,
    site_dir: Path,
    unauthorized_redirect: bool,
):
    """Return an async context manager that replaces the real lifespan.

    verifier=None leaves app.state.verifier unset, which simulates a process
    started without its auth core (server misconfiguration).

    The purge_task is a long-sleeping coroutine so shutdown can cancel a real
    asyncio.Task exactly as in production.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.verifier = verifier
        app.state.session_store = store
        app.state.gate = AccessGate(store)
        app.state.public_dir = public_dir
        app.state.site_dir = site_dir
        app.state.unauthorized_redirect = unauthorized_redirect
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture
def site_dirs(tmp_path: Path) -> tuple[Path, Path]:
    """Create PUBLIC_DIR and SITE_DIR siblings plus a file outside both."""
    public_dir = tmp_path / "public"
    site_dir = tmp_path / "site"
    (site_dir / "docs").mkdir(parents=True)
    public_dir.mkdir()
    (public_dir / "index.html").write_text("LOGIN PAGE")
    (public_dir / "style.css").write_text("body{}")
    (site_dir / "index.html").write_text("SITE INDEX")
    (site_dir / "app.js").write_text("console.log('protected')")
    (site_dir / "docs" / "page.html").write_text("DEEP PAGE")
    (tmp_path / "secret.txt").write_text("OUTSIDE ROOT")
    return public_dir.resolve(), site_dir.resolve()


@pytest.fixture
def make_client(site_dirs: tuple[Path, Path]) -> Generator:
    """Yield a factory: make_client(verifier=..., store=..., unauthorized_redirect=...).

    Each call builds a fresh TestClient (follow_redirects=False so redirect
    Locations stay visible) and returns (client, store). Function scope keeps
    sessions from leaking between tests.
    """
    public_dir, site_dir = site_dirs
    stack = ExitStack()

    def _make(
        verifier: CredentialVerifier | None = None,
        store: SessionStore | None = None,
        unauthorized_redirect: bool = False,
        configured: bool = True,
    ) -> tuple[TestClient, SessionStore]:
        if configured and verifier is None:
            verifier = make_verifier()
        if store is None:
            store = SessionStore()
        app.router.lifespan_context = _patch_lifespan(
            verifier if configured else None, store, public_dir, site_dir, unauthorized_redirect
        )
        client = stack.enter_context(TestClient(app, follow_redirects=False, raise_server_exceptions=True))
        return client, store

    yield _make
    stack.close()


@pytest.fixture
def client(make_client) -> tuple[TestClient, SessionStore]:
    """(client, store) with password + TOTP factors active."""
    return make_client()
