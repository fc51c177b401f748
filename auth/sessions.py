"""
auth/sessions.py -- In-memory Session Store.

Maps each live session token to its expiry (a clock reading) or None when no
server-side TTL is configured. A token is valid if and only if it is present
and its expiry, if any, has not passed.

Concurrency: every operation takes a single threading.Lock. Sync route
handlers and threadpool work can run in parallel with the event loop, and the
critical sections are a dict lookup or mutation, so contention is negligible.

Expiry is enforced lazily in is_valid() and actively by purge_expired(), which
the app lifespan calls on a timer. Either alone is enough for correctness;
the sweep only bounds memory for abandoned sessions.

Durability: none. A process restart ends every session. This is accepted.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from auth.tokens import generate_session_token


class SessionStore:
    def __init__(self, ttl_seconds: int = 0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[str, float | None] = {}

    def issue(self) -> str:
        """Mint a new token, record it as valid, and return it."""
        expires_at = self._clock() + self.ttl_seconds if self.ttl_seconds > 0 else None
        with self._lock:
            token = generate_session_token()
            while token in self._sessions:
                token = generate_session_token()
            self._sessions[token] = expires_at
        return token

    def is_valid(self, token: object) -> bool:
        """Return True iff `token` is live. Hot path: called on every gated request."""
        if not isinstance(token, str) or not token:
            return False
        with self._lock:
            if token not in self._sessions:
                return False
            expires_at = self._sessions[token]
            if expires_at is not None and expires_at <= self._clock():
                del self._sessions[token]
                return False
            return True

    def revoke(self, token: object) -> None:
        """Remove `token`. Revoking an unknown token is a no-op."""
        if not isinstance(token, str):
            return
        with self._lock:
            self._sessions.pop(token, None)

    def purge_expired(self) -> int:
        """Drop every expired token. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [t for t, exp in self._sessions.items() if exp is not None and exp <= now]
            for token in expired:
                del self._sessions[token]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
