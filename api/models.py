"""
API request and response models for TokenGate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Success bodies carry "result": "success" plus the next token to present. The
token field is filled in by api/responses.token_response(), never by the
route itself, so no route can forget to rotate it.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    # The username becomes the token's resource identifier, so it may not
    # contain the "|" separator.
    username: str = Field(min_length=1, max_length=255, pattern=r"^[^|]+$")
    password: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SuccessResponse(BaseModel):
    """Base envelope for successful token-authenticated responses."""

    model_config = ConfigDict(frozen=True)

    result: str = "success"
    # Filled in by token_response(); the JSON key follows TOKEN_PARAMETER_NAME.
    token: Optional[str] = Field(default=None, description="Next single-use token to present.")


class ResourceResponse(SuccessResponse):
    """Response for GET /api/v1/ -- echoes the authenticated resource."""

    resource_id: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
