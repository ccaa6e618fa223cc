"""
api/responses.py -- Response builders that rotate the caller's token.

Tokens are single-use: require_token() has already deleted the one the client
presented. Every successful response to an authenticated resource therefore
issues a replacement and embeds it under TOKEN_PARAMETER_NAME.

If the store fails while issuing the replacement, the request does not crash
with a 500: it is answered through the same pathway as any other token
failure (403 forbidden or 401 token_database_error, per configuration).
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from auth.dependencies import token_error_exception
from auth.errors import TokenErrorKind, TokenStoreError
from auth.tokens import TokenService
from core.config import get_settings

logger = logging.getLogger("tokengate.api")


def token_response(request: Request, resource_id: str, body: BaseModel, status_code: int = 200) -> JSONResponse:
    """Serialize body and attach a freshly issued token for resource_id."""
    service: TokenService = request.app.state.token_service
    content = body.model_dump(exclude={"token"})
    try:
        content[get_settings().token_parameter_name] = service.issue(resource_id)
    except TokenStoreError as exc:
        logger.error("Could not issue replacement token for resource %s: %s", resource_id, exc.__cause__ or exc)
        failure = token_error_exception(TokenErrorKind.DATABASE_ERROR)
        return JSONResponse(status_code=failure.status_code, content={"error": failure.detail})
    resp = JSONResponse(status_code=status_code, content=content)
    # Bearer credentials must not end up in shared caches.
    resp.headers["Cache-Control"] = "no-store"
    return resp
