"""
auth/gate.py -- Access Gate: per-request allow/deny decision for protected content.

The gate is stateless. The only state that spans requests lives in the
SessionStore it is handed; the gate just extracts the cookie and asks.

Web handlers compose it explicitly rather than hiding it in middleware:

    if gate.check(request) is Decision.DENIED:
        return deny(request)
    return serve(...)

so every protected handler visibly decides before it touches the filesystem.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.requests import HTTPConnection

from auth.models import Decision
from auth.tokens import COOKIE_NAME

if TYPE_CHECKING:
    from auth.sessions import SessionStore


class AccessGate:
    def __init__(self, store: SessionStore, cookie_name: str = COOKIE_NAME) -> None:
        self.store = store
        self.cookie_name = cookie_name

    def token_from(self, request: HTTPConnection) -> str | None:
        """Return the session credential carried by the request, if any."""
        return request.cookies.get(self.cookie_name) or None

    def check(self, request: HTTPConnection) -> Decision:
        token = self.token_from(request)
        if token is not None and self.store.is_valid(token):
            return Decision.ALLOWED
        return Decision.DENIED
