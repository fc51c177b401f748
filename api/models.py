"""
API request and response models for SiteGate JSON endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal representation. Route handlers map between the two.

Every response carries an `ok` boolean so the login page can branch on one
field; errors add a machine-readable code and a short, non-revealing message.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class VerifyRequest(BaseModel):
    """Request body for POST /verify.

    StrictStr rejects numbers and booleans instead of coercing them, so
    {"code": 123456} is bad input rather than a silently accepted "123456".
    Which fields are *required* depends on the configured factors and is
    decided by the CredentialVerifier, not here.
    """

    model_config = ConfigDict(extra="ignore")

    password: Optional[StrictStr] = Field(default=None, max_length=1024)
    code: Optional[StrictStr] = Field(default=None, max_length=32)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class OkResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    ok: bool = False
    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


def error_body(code: str, message: str) -> dict:
    """Return the serialized error envelope for a JSONResponse."""
    return ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump()
