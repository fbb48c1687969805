"""
api/routes/v1/auth.py -- Token issuance and identity endpoints.

Routes:
  POST /api/v1/auth/token   -- username/password login; returns a bearer token
  GET  /api/v1/auth/me      -- current identity (requires auth)

Security:
  POST /auth/token is rate-limited per IP (LOGIN_RATE_LIMIT).
  authenticate() provides timing equalization -- use it, never inline.
  Wrong username and wrong password produce the same 401 body.
  Cache-Control: no-store on every token response.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from jose import JWTError

from api.limiter import limiter, login_rate_limit
from api.models import ErrorDetail, ErrorResponse, MeResponse, TokenRequest, TokenResponse
from auth.dependencies import get_current_user
from auth.models import User
from auth.passwords import authenticate
from auth.store import UserStore
from auth.tokens import build_claims, issue_token
from core.config import get_settings
from core.errors import BadRequest

router = APIRouter()


@router.post("/auth/token", response_model=TokenResponse)
@limiter.limit(login_rate_limit)
async def token(request: Request, body: TokenRequest) -> JSONResponse:
    """Exchange a username and password for a signed bearer token."""
    user_store: UserStore = request.app.state.user_store
    user = await run_in_threadpool(authenticate, user_store, body.username, body.password)
    if user is None:
        resp = JSONResponse(
            status_code=401,
            content=ErrorResponse(
                error=ErrorDetail(code="bad_credentials", message="Invalid username or password.")
            ).model_dump(exclude_none=True),
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    settings = get_settings()
    try:
        signed = issue_token(build_claims(user), settings.token_duration_minutes, settings.secret_key)
    except JWTError as exc:
        raise BadRequest("Token could not be issued.") from exc
    await run_in_threadpool(user_store.update_last_login, user.id)

    resp = JSONResponse(
        status_code=200,
        content=TokenResponse(token=signed.token, expiration=signed.expires_at).model_dump(mode="json"),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/auth/me", response_model=MeResponse)
async def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return identity information for the currently authenticated user."""
    return MeResponse(user_id=current_user.id, username=current_user.username, roles=list(current_user.roles))
