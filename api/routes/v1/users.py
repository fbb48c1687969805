"""
api/routes/v1/users.py -- Registration, profile and password endpoints.

Routes:
  POST   /api/v1/users                          -- register (public)
  GET    /api/v1/users/{user_id}                -- profile + ETag (self or admin)
  PUT    /api/v1/users/{user_id}                -- update email/name (If-Match honored)
  DELETE /api/v1/users/{user_id}                -- delete identity (admin only)
  POST   /api/v1/users/{user_id}/changepassword -- replace the active password
  GET    /api/v1/users/{user_id}/passwords      -- password validity windows

Security:
  Registration and password changes run the breach check and fail closed.
  Password history responses carry timestamps only, never hashes.
  Deleting a user keeps its password history.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool

from api.models import PasswordChange, PasswordHistoryRow, UserCreate, UserResponse, UserUpdate
from auth.dependencies import get_request_context, require_admin
from auth.models import User
from auth.passwords import hash_password, verify
from auth.pwned import BreachChecker
from auth.store import UserStore
from core.concurrency import check_precondition, guarded_delete, guarded_update, lost_race
from core.context import RequestContext
from core.errors import BadRequest, Forbidden, NotFound
from core.etag import format_etag
from core.validation import ensure_valid

router = APIRouter()


def _require_access(ctx: RequestContext, user_id: int) -> None:
    if not ctx.can_access_user(user_id):
        raise Forbidden()


async def _reject_pwned(request: Request, plaintext: str) -> None:
    checker: BreachChecker = request.app.state.breach_checker
    if await checker.is_password_pwned(plaintext):
        raise BadRequest("Pwned Password")


@router.post("/users", response_model=UserResponse, status_code=201)
async def register(request: Request, response: Response, body: UserCreate) -> UserResponse:
    """Create an identity with the "user" role and its first password."""
    user_store: UserStore = request.app.state.user_store
    if not body.password:
        raise BadRequest("Password is required")
    await _reject_pwned(request, body.password)
    if await run_in_threadpool(user_store.get_by_username, body.username) is not None:
        raise BadRequest("User already exists")

    user = User(username=body.username, email=body.email, name=body.name)
    ensure_valid(user)
    user.hashed_password = await run_in_threadpool(hash_password, body.password)
    user_id = await run_in_threadpool(user_store.create_user, user)

    created = await run_in_threadpool(user_store.get_by_id, user_id)
    response.headers["ETag"] = format_etag(created.row_version)
    response.headers["Location"] = f"/api/v1/users/{user_id}"
    return UserResponse.from_user(created)


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    request: Request,
    response: Response,
    user_id: int,
    ctx: RequestContext = Depends(get_request_context),
) -> UserResponse:
    _require_access(ctx, user_id)
    user = await run_in_threadpool(request.app.state.user_store.get_by_id, user_id)
    if user is None:
        raise NotFound()
    response.headers["ETag"] = format_etag(user.row_version)
    return UserResponse.from_user(user)


@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(
    request: Request,
    response: Response,
    user_id: int,
    body: UserUpdate,
    ctx: RequestContext = Depends(get_request_context),
) -> UserResponse:
    """Replace email and name. Send If-Match to guard against lost updates."""
    _require_access(ctx, user_id)
    user_store: UserStore = request.app.state.user_store

    def apply(user: User) -> User:
        user.email = body.email
        user.name = body.name
        return user

    result = await guarded_update(
        ctx,
        fetch=lambda: user_store.get_by_id(user_id),
        write=user_store.update_profile,
        apply=apply,
    )
    response.headers["ETag"] = result.etag
    return UserResponse.from_user(result.entity)


@router.delete("/users/{user_id}", status_code=204)
async def delete_user(
    request: Request,
    user_id: int,
    ctx: RequestContext = Depends(get_request_context),
    admin: User = Depends(require_admin),
) -> Response:
    """Delete an identity. Admin only; the password history is retained."""
    user_store: UserStore = request.app.state.user_store
    await guarded_delete(
        ctx,
        fetch=lambda: user_store.get_by_id(user_id),
        remove=lambda user, expected: user_store.delete_user(user.id, expected),
    )
    return Response(status_code=204)


@router.post("/users/{user_id}/changepassword", status_code=204)
async def change_password(
    request: Request,
    user_id: int,
    body: PasswordChange,
    ctx: RequestContext = Depends(get_request_context),
) -> Response:
    """Replace the active password after checking the current one.

    Order: identical passwords, current password, breach check, then the
    write. The previous hash stays in the history.
    """
    _require_access(ctx, user_id)
    user_store: UserStore = request.app.state.user_store
    current = await run_in_threadpool(user_store.get_by_id, user_id)
    if current is None:
        raise NotFound()
    check_precondition(ctx, current.row_version)

    if body.new_password == body.old_password:
        raise BadRequest("Passwords are the same")
    if not await run_in_threadpool(verify, user_store, user_id, body.old_password):
        raise BadRequest("Current passwords don't match")
    await _reject_pwned(request, body.new_password)

    hashed = await run_in_threadpool(hash_password, body.new_password)
    expected = current.row_version if ctx.if_match is not None else None
    new_version = await run_in_threadpool(user_store.replace_password, user_id, hashed, expected)
    if new_version is None:
        await lost_race(lambda: user_store.get_by_id(user_id))
    return Response(status_code=204, headers={"ETag": format_etag(new_version)})


@router.get("/users/{user_id}/passwords", response_model=list[PasswordHistoryRow])
async def password_history(
    request: Request,
    user_id: int,
    ctx: RequestContext = Depends(get_request_context),
) -> list[PasswordHistoryRow]:
    """List password validity windows, most recent first."""
    _require_access(ctx, user_id)
    user_store: UserStore = request.app.state.user_store
    if await run_in_threadpool(user_store.get_by_id, user_id) is None:
        raise NotFound()
    history = await run_in_threadpool(user_store.passwords.list_history, user_id)
    return [PasswordHistoryRow.from_entry(e) for e in history]
