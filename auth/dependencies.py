"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Requests authenticate with an "Authorization: Bearer <jwt>" header issued by
POST /api/v1/auth/token. Validity is signature + expiry only; the identity
is then re-read so deactivated or deleted users lose access immediately.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises Unauthorized.
get_request_context() builds the explicit RequestContext (caller identity +
If-Match precondition) that routes pass down to the concurrency controller.

Layer rule: no imports from records/. auth/dependencies.py may import from
fastapi because it is part of the dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request
from fastapi.concurrency import run_in_threadpool

from auth.models import User
from auth.tokens import decode_access_token
from core.config import get_settings
from core.context import RequestContext
from core.errors import Forbidden, Unauthorized
from core.etag import parse_if_match


async def try_get_current_user(request: Request) -> User | None:
    """Authenticate the request from its Bearer token. Never raises."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    payload = decode_access_token(auth_header[7:], get_settings().secret_key)
    if payload is None:
        return None
    user_store = request.app.state.user_store
    user = await run_in_threadpool(user_store.get_by_id, payload["user_id"])
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(request: Request) -> User:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    user = await try_get_current_user(request)
    if user is None:
        raise Unauthorized()
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if "admin" not in user.roles:
        raise Forbidden("Admin access required.")
    return user


async def get_request_context(request: Request, user: User = Depends(get_current_user)) -> RequestContext:
    """Per-request context: who is calling and which version they expect."""
    return RequestContext(
        user_id=user.id,
        username=user.username,
        roles=tuple(user.roles),
        if_match=parse_if_match(request.headers.get("If-Match")),
    )
