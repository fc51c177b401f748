"""
auth/dependencies.py -- FastAPI Depends() helpers for the auth core.

The verifier, session store, and gate are built once in the app lifespan and
parked on app.state. These helpers fetch them per request so route handlers
never reach for module globals, and tests can substitute fakes by wiring a
different app.state.

A missing collaborator means the process started without running the real
lifespan -- a server misconfiguration. That is reported as HTTP 500 with the
generic server_misconfigured code, never as a silent allow.

Layer rule: no imports from web/ or api/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request

from auth.gate import AccessGate
from auth.models import Decision
from auth.sessions import SessionStore
from auth.verifier import CredentialVerifier

logger = logging.getLogger("sitegate.auth")


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        logger.error("app.state.%s is not configured", name)
        raise HTTPException(
            status_code=500,
            detail={"code": "server_misconfigured", "message": "Server error."},
        )
    return value


def get_verifier(request: Request) -> CredentialVerifier:
    return _state(request, "verifier")


def get_session_store(request: Request) -> SessionStore:
    return _state(request, "session_store")


def get_access_gate(request: Request) -> AccessGate:
    return _state(request, "gate")


def has_session(request: Request) -> bool:
    """Soft check: True if the request carries a live session, False otherwise.

    Never raises for an unauthenticated caller -- the public login page uses
    this to decide whether to bounce an already-logged-in user inward.
    """
    gate: AccessGate = _state(request, "gate")
    return gate.check(request) is Decision.ALLOWED
