"""
web/routes.py -- File-serving routes: the public login surface and the gated site.

These routes share app.state with the API routes (same session store and
gate) but return files instead of JSON.

Route registration order matters. The protected prefix routes must be
registered before the public catch-all or the catch-all would answer for
them -- and serve the login page with a 200 instead of gating.

Routes:
  GET|HEAD <prefix>            -- protected site index (gated)
  GET|HEAD <prefix>/{path}     -- protected file, SPA fallback to index.html (gated)
  GET|HEAD /                   -- login page; live sessions bounce to <prefix>/
  GET|HEAD /{path}             -- public asset, fallback to the login page

Every protected handler asks the gate first and touches the filesystem only on
ALLOWED. That includes the SPA fallback document: there is no code path from a
protected URL to a file that skips the check.
"""

import logging
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse, Response

from auth.dependencies import get_access_gate, has_session
from auth.gate import AccessGate
from auth.models import Decision
from core.config import get_settings

logger = logging.getLogger("sitegate.web")

PROTECTED_PREFIX = get_settings().protected_prefix

router = APIRouter()

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _safe_next(next_url: Optional[str]) -> str:
    """Validate a post-login redirect target. Only accept relative paths. [C2]

    Rejects absolute URLs and protocol-relative "//host" forms, both of which
    would send the user off-site after login.
    """
    if next_url and next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return "/"


def _resolve(root: Path, rel: str) -> Optional[Path]:
    """Map a URL sub-path to a file under `root`.

    Returns None if the path escapes `root` (after symlink resolution), does
    not exist, or is a directory without an index.html.
    """
    try:
        candidate = (root / rel.lstrip("/")).resolve()
    except (OSError, ValueError):
        return None
    if candidate != root and root not in candidate.parents:
        return None
    if candidate.is_dir():
        candidate = candidate / "index.html"
    return candidate if candidate.is_file() else None


def _deny(request: Request) -> Response:
    """Build the Unauthorized response for a gated path."""
    if getattr(request.app.state, "unauthorized_redirect", False):
        target = quote(_safe_next(request.url.path))
        return RedirectResponse(f"/?next={target}", status_code=302)

    login_page = _resolve(request.app.state.public_dir, "index.html")
    if login_page is None:
        return JSONResponse(
            status_code=401,
            content={"ok": False, "error": {"code": "unauthorized", "message": "Authentication required."}},
        )
    return FileResponse(login_page, status_code=401, headers={"Cache-Control": "no-store"})


# ---------------------------------------------------------------------------
# Protected site
# ---------------------------------------------------------------------------


@router.api_route(PROTECTED_PREFIX, methods=["GET", "HEAD"], include_in_schema=False)
def protected_index(request: Request, gate: AccessGate = Depends(get_access_gate)) -> Response:
    return protected(request, "", gate)


@router.api_route(PROTECTED_PREFIX + "/{path:path}", methods=["GET", "HEAD"], include_in_schema=False)
def protected(request: Request, path: str, gate: AccessGate = Depends(get_access_gate)) -> Response:
    """Serve a file from SITE_DIR to holders of a live session."""
    if gate.check(request) is Decision.DENIED:
        logger.debug("Denied %s", request.url.path)
        return _deny(request)

    site_dir: Path = request.app.state.site_dir
    target = _resolve(site_dir, path) or _resolve(site_dir, "index.html")
    if target is None:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "Not found."})
    return FileResponse(target, headers={"Cache-Control": "no-store"})


# ---------------------------------------------------------------------------
# Public login surface
# ---------------------------------------------------------------------------


def _serve_public(request: Request, path: str) -> Response:
    public_dir: Path = request.app.state.public_dir
    target = _resolve(public_dir, path) or _resolve(public_dir, "index.html")
    if target is None:
        raise HTTPException(status_code=404, detail={"code": "not_found", "message": "Not found."})
    return FileResponse(target)


@router.api_route("/", methods=["GET", "HEAD"], include_in_schema=False)
def login_page(request: Request) -> Response:
    """Render the login page, or send an already-authenticated user inward."""
    if has_session(request):
        return RedirectResponse(PROTECTED_PREFIX + "/", status_code=302)
    return _serve_public(request, "index.html")


@router.api_route("/{path:path}", methods=["GET", "HEAD"], include_in_schema=False)
def public_asset(request: Request, path: str) -> Response:
    """Serve a public asset; unknown paths fall back to the login page."""
    return _serve_public(request, path)
