"""
auth/dependencies.py -- FastAPI Depends() helpers for token authentication.

Two gates, checked in this order on protected routes:
  1. Static API key (optional, API_KEY_ENABLED) -- header first, then query
     parameter. Any failure is a 403.
  2. Single-use token -- header first, then query parameter. The presented
     token is consumed; the route must hand back a fresh one
     (api/responses.token_response).

Token failures map to one of two shapes depending on TOKEN_FORBIDDEN_ON_ERROR:
  True  -> 403 {"code": "forbidden"} for every failure kind (hides details).
  False -> 401 {"code": "<kind>", "message": "<reason>"}.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import HTTPException, Request

from auth.errors import TokenErrorKind
from auth.tokens import TokenService
from core.config import get_settings

logger = logging.getLogger("tokengate.auth")

FORBIDDEN_DETAIL = {"code": "forbidden", "message": "Access forbidden."}


def token_error_exception(error: TokenErrorKind) -> HTTPException:
    """Build the HTTPException for a token failure according to configuration."""
    if get_settings().token_forbidden_on_error:
        return HTTPException(status_code=403, detail=FORBIDDEN_DETAIL)
    return HTTPException(
        status_code=401,
        detail={"code": error.value, "message": error.message},
    )


def read_token(request: Request) -> str | None:
    """Return the raw token from the configured header or query parameter."""
    settings = get_settings()
    raw = request.headers.get(settings.token_header_name)
    if raw is None:
        raw = request.query_params.get(settings.token_parameter_name)
    return raw


def require_api_key(request: Request) -> None:
    """Reject the request with 403 unless it carries the configured API key.

    No-op when API_KEY_ENABLED is false.

    Use as a router-level dependency:
        APIRouter(dependencies=[Depends(require_api_key)])
    """
    settings = get_settings()
    if not settings.api_key_enabled:
        return
    presented = request.headers.get(settings.api_key_header_name)
    if presented is None:
        presented = request.query_params.get(settings.api_key_parameter_name, "")
    if not hmac.compare_digest(presented.encode("utf-8"), settings.api_key.encode("utf-8")):
        raise HTTPException(status_code=403, detail=FORBIDDEN_DETAIL)


def require_token(request: Request) -> str:
    """Consume the presented token and return its resource identifier.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(resource_id: str = Depends(require_token)): ...
    """
    service: TokenService = request.app.state.token_service
    result = service.consume(read_token(request))
    if not result.ok:
        if result.error is TokenErrorKind.DATABASE_ERROR:
            logger.error("Token validation failed on storage error: %s", result.cause)
        raise token_error_exception(result.error)
    return result.resource_id
