"""
core/concurrency.py -- Optimistic concurrency control for updates and deletes.

Every mutating request on a versioned entity runs the same sequence, one step
at a time:

  1. fetch          current entity by key; missing -> NotFound
  2. precondition   If-Match tag vs current row_version; mismatch -> PreconditionFailed
                    (no tag -> skipped, last writer wins)
  3. cross-check    foreign keys vs the path-derived owner; mismatch -> BadRequest
  4. validate       (updates only) entity rules; failures -> UnprocessableEntity
  5. apply          store write; the store advances row_version atomically
  6. respond        new row_version encoded as the response tag

The store callables are synchronous SQLAlchemy calls; they run through
run_in_threadpool so each store step is a suspension point for the event loop.

When a tag was supplied, the fetched row_version is passed to the store as
the expected version and the write becomes a compare-and-swap. Two writers
holding the same tag therefore cannot both succeed: the loser's UPDATE
matches no row and is reported as PreconditionFailed.

Layer rule: core/ only.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from fastapi.concurrency import run_in_threadpool

from core import etag
from core.context import RequestContext
from core.errors import BadRequest, NotFound, PreconditionFailed
from core.validation import ensure_valid

logger = logging.getLogger("aquarium.concurrency")

T = TypeVar("T")

Fetch = Callable[[], Optional[T]]
Write = Callable[[T, Optional[bytes]], Optional[bytes]]
Remove = Callable[[T, Optional[bytes]], bool]


@dataclass(frozen=True)
class Ownership:
    """Foreign keys the fetched entity must carry, taken from the request path.

    None means "not checked". label names the entity in error messages.
    """

    user_id: Optional[int] = None
    aquarium_id: Optional[int] = None
    label: str = "Record"


@dataclass
class GuardedResult(Generic[T]):
    entity: T
    etag: Optional[str] = None


def check_precondition(ctx: RequestContext, raw_version: bytes) -> None:
    if ctx.if_match is None:
        return
    if not etag.matches(ctx.if_match, raw_version):
        logger.info("Precondition failed for user_id=%s", ctx.user_id)
        raise PreconditionFailed()


def check_ownership(entity: object, owner: Optional[Ownership]) -> None:
    if owner is None:
        return
    if owner.user_id is not None and getattr(entity, "user_id", None) != owner.user_id:
        raise BadRequest(f"User and {owner.label} don't match")
    if owner.aquarium_id is not None and getattr(entity, "aquarium_id", None) != owner.aquarium_id:
        raise BadRequest(f"Aquarium and {owner.label} don't match")


async def _fetch_checked(ctx: RequestContext, fetch: Fetch, owner: Optional[Ownership]):
    current = await run_in_threadpool(fetch)
    if current is None:
        raise NotFound()
    check_precondition(ctx, current.row_version)
    check_ownership(current, owner)
    return current


async def lost_race(fetch: Fetch) -> None:
    """The compare-and-swap matched no row: deleted or modified concurrently."""
    if await run_in_threadpool(fetch) is None:
        raise NotFound()
    raise PreconditionFailed()


async def guarded_update(
    ctx: RequestContext,
    fetch: Fetch,
    write: Write,
    *,
    apply: Callable[[T], T],
    owner: Optional[Ownership] = None,
) -> GuardedResult[T]:
    """Run the update state machine. Returns the stored entity and its new tag.

    apply receives a shallow copy of the fetched entity and returns the entity
    to persist; it must not touch the store.
    """
    current = await _fetch_checked(ctx, fetch, owner)
    updated = apply(copy.copy(current))
    ensure_valid(updated)

    expected = current.row_version if ctx.if_match is not None else None
    new_version = await run_in_threadpool(write, updated, expected)
    if new_version is None:
        await lost_race(fetch)
    updated.row_version = new_version
    return GuardedResult(entity=updated, etag=etag.format_etag(new_version))


async def guarded_delete(
    ctx: RequestContext,
    fetch: Fetch,
    remove: Remove,
    *,
    owner: Optional[Ownership] = None,
) -> GuardedResult[T]:
    """Run the delete state machine. Deletion is immediate and irreversible."""
    current = await _fetch_checked(ctx, fetch, owner)
    expected = current.row_version if ctx.if_match is not None else None
    removed = await run_in_threadpool(remove, current, expected)
    if not removed:
        await lost_race(fetch)
    return GuardedResult(entity=current)
