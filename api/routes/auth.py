"""
api/routes/auth.py -- Login, logout, and session-status JSON endpoints.

Routes:
  POST /verify   -- check credentials; on success mint a session and set the cookie
  POST /logout   -- revoke the caller's session and clear the cookie; always 200
  GET  /session  -- {"ok": true|false}: does the caller hold a live session?

Security:
  [H2] POST /verify is rate-limited per client IP (LOGIN_RATE_LIMIT).
  [C1] One generic 401 body for every failing factor -- no factor oracle.
  [C3] bcrypt runs in the threadpool so a login does not stall the event loop.
  [M5] Cache-Control: no-store on every response that touches the cookie.
  Verifier exceptions are logged here and surfaced as a bare 500; no internal
  detail reaches the response body.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from api.limiter import limiter, login_rate_limit
from api.models import OkResponse, VerifyRequest, error_body
from auth.dependencies import get_access_gate, get_session_store, get_verifier, has_session
from auth.gate import AccessGate
from auth.models import FailureKind, LoginAttempt
from auth.sessions import SessionStore
from auth.tokens import clear_auth_cookie, set_auth_cookie
from auth.verifier import CredentialVerifier
from core.config import get_settings

logger = logging.getLogger("sitegate.auth")

# Auth policy:
# - POST /verify:  public -- this is how a session is obtained
# - POST /logout:  public -- revoking an unknown or absent token is a no-op
# - GET  /session: public -- answers a yes/no about the caller's own cookie
router = APIRouter()

_BAD_INPUT = ("bad_input", "Malformed login request.")
_INVALID = ("invalid_credentials", "Invalid credentials.")
_SERVER_ERROR = ("server_misconfigured", "Server error.")


def _json(status_code: int, content: dict) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=content)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/verify", response_model=OkResponse)
@limiter.limit(login_rate_limit)  # [H2] below @router so FastAPI registers the limited wrapper
async def verify(
    request: Request,
    body: VerifyRequest,
    verifier: CredentialVerifier = Depends(get_verifier),
    store: SessionStore = Depends(get_session_store),
) -> JSONResponse:
    """Verify the submitted factors and start a session on success."""
    attempt = LoginAttempt(password=body.password, code=body.code)
    try:
        result = await run_in_threadpool(verifier.verify, attempt)  # [C3]
    except Exception:
        logger.exception("Credential verification raised")
        return _json(500, error_body(*_SERVER_ERROR))

    if not result.success:
        logger.info("Login refused (%s)", result.reason.value)
        if result.reason is FailureKind.BAD_INPUT:
            return _json(400, error_body(*_BAD_INPUT))
        return _json(401, error_body(*_INVALID))  # [C1]

    token = store.issue()
    logger.info("Login succeeded (%d live sessions)", len(store))
    resp = _json(200, OkResponse().model_dump())
    set_auth_cookie(resp, token, secure=get_settings().secure_cookies, max_age=store.ttl_seconds)
    return resp


@router.post("/logout", response_model=OkResponse)
async def logout(
    request: Request,
    gate: AccessGate = Depends(get_access_gate),
) -> JSONResponse:
    """Revoke the caller's session token (if any) and clear the cookie."""
    token = gate.token_from(request)
    if token:
        gate.store.revoke(token)
        logger.info("Session revoked")
    resp = _json(200, OkResponse().model_dump())
    clear_auth_cookie(resp, secure=get_settings().secure_cookies)
    return resp


@router.get("/session", response_model=OkResponse)
async def session_status(request: Request) -> JSONResponse:
    """Report whether the caller's cookie names a live session."""
    return _json(200, OkResponse(ok=has_session(request)).model_dump())
