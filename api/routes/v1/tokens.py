"""
api/routes/v1/tokens.py -- Login and token-protected REST endpoints.

Routes:
  POST /api/v1/login   -- check demo credentials; issue the first token
  GET  /api/v1/        -- consume the presented token; echo the resource id

Both routes sit behind require_api_key (no-op unless API_KEY_ENABLED).

Security:
  [H2] POST /login is rate-limited per IP (LOGIN_RATE_LIMIT).
  [M5] Cache-Control: no-store on every response carrying a token.
  Credentials are compared with hmac.compare_digest. Unknown username and
  wrong password produce the same response.
"""

from __future__ import annotations

import hmac

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import LoginRequest, ResourceResponse, SuccessResponse
from api.responses import token_response
from auth.dependencies import require_api_key, require_token
from core.config import get_settings

# Auth policy:
# - POST /api/v1/login: API key only -- this is where the first token comes from
# - GET  /api/v1/:      API key + single-use token (require_token)
router = APIRouter(dependencies=[Depends(require_api_key)])

# Compared against when the username is unknown, so both branches do the same work.
_DUMMY_PASSWORD = "tokengate_timing_dummy"


def _check_credentials(username: str, password: str) -> bool:
    expected = get_settings().login_accounts.get(username)
    candidate = expected if expected is not None else _DUMMY_PASSWORD
    matches = hmac.compare_digest(password.encode("utf-8"), candidate.encode("utf-8"))
    return expected is not None and matches


# The limit wrapper must sit under @router so the registered endpoint is the limited one.
@router.post("/login", response_model=SuccessResponse)
@limiter.limit(lambda: get_settings().login_rate_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username and password; return the first token.

    The username is the resource identifier the token is bound to.
    """
    if not _check_credentials(body.username, body.password):
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Login failed!"}},
        )
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp
    return token_response(request, body.username, SuccessResponse())


@router.get("/", response_model=ResourceResponse)
def index(request: Request, resource_id: str = Depends(require_token)) -> JSONResponse:
    """Return the resource the presented token belonged to, plus its replacement."""
    return token_response(request, resource_id, ResourceResponse(resource_id=resource_id))
