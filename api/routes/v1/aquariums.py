"""
api/routes/v1/aquariums.py -- Aquarium REST endpoints.

Routes:
  GET    /api/v1/aquariums                  -- list the caller's aquariums
  POST   /api/v1/aquariums                  -- create an aquarium; 201 + ETag
  GET    /api/v1/aquariums/{aquarium_id}    -- single aquarium + ETag
  PUT    /api/v1/aquariums/{aquarium_id}    -- replace mutable fields (If-Match honored)
  DELETE /api/v1/aquariums/{aquarium_id}    -- delete with readings and water changes

Aquariums are always looked up scoped to the caller, so another user's
aquarium is reported as 404, never as 403.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool

from api.models import AquariumBody, AquariumResponse
from auth.dependencies import get_request_context
from core.concurrency import Ownership, guarded_delete, guarded_update
from core.context import RequestContext
from core.errors import NotFound
from core.etag import format_etag
from core.validation import ensure_valid
from records.models import Aquarium
from records.store import RecordStore

router = APIRouter()


async def require_aquarium(store: RecordStore, ctx: RequestContext, aquarium_id: int) -> Aquarium:
    """Fetch the caller's aquarium or raise NotFound."""
    aquarium = await run_in_threadpool(store.get_aquarium, aquarium_id, ctx.user_id)
    if aquarium is None:
        raise NotFound("Aquarium not found.")
    return aquarium


@router.get("/aquariums", response_model=list[AquariumResponse])
async def list_aquariums(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
) -> list[AquariumResponse]:
    store: RecordStore = request.app.state.record_store
    aquariums = await run_in_threadpool(store.list_aquariums, ctx.user_id)
    return [AquariumResponse.from_aquarium(a) for a in aquariums]


@router.post("/aquariums", response_model=AquariumResponse, status_code=201)
async def create_aquarium(
    request: Request,
    response: Response,
    body: AquariumBody,
    ctx: RequestContext = Depends(get_request_context),
) -> AquariumResponse:
    store: RecordStore = request.app.state.record_store
    aquarium = Aquarium(user_id=ctx.user_id, **body.model_dump())
    ensure_valid(aquarium)
    aquarium_id = await run_in_threadpool(store.create_aquarium, aquarium)

    created = await require_aquarium(store, ctx, aquarium_id)
    response.headers["ETag"] = format_etag(created.row_version)
    response.headers["Location"] = f"/api/v1/aquariums/{aquarium_id}"
    return AquariumResponse.from_aquarium(created)


@router.get("/aquariums/{aquarium_id}", response_model=AquariumResponse)
async def get_aquarium(
    request: Request,
    response: Response,
    aquarium_id: int,
    ctx: RequestContext = Depends(get_request_context),
) -> AquariumResponse:
    aquarium = await require_aquarium(request.app.state.record_store, ctx, aquarium_id)
    response.headers["ETag"] = format_etag(aquarium.row_version)
    return AquariumResponse.from_aquarium(aquarium)


@router.put("/aquariums/{aquarium_id}", response_model=AquariumResponse)
async def update_aquarium(
    request: Request,
    response: Response,
    aquarium_id: int,
    body: AquariumBody,
    ctx: RequestContext = Depends(get_request_context),
) -> AquariumResponse:
    """Replace every mutable field. Send If-Match to guard against lost updates."""
    store: RecordStore = request.app.state.record_store
    result = await guarded_update(
        ctx,
        fetch=lambda: store.get_aquarium(aquarium_id, ctx.user_id),
        write=store.update_aquarium,
        apply=body.apply_to,
        owner=Ownership(user_id=ctx.user_id, label="Aquarium"),
    )
    response.headers["ETag"] = result.etag
    return AquariumResponse.from_aquarium(result.entity)


@router.delete("/aquariums/{aquarium_id}", status_code=204)
async def delete_aquarium(
    request: Request,
    aquarium_id: int,
    ctx: RequestContext = Depends(get_request_context),
) -> Response:
    store: RecordStore = request.app.state.record_store
    await guarded_delete(
        ctx,
        fetch=lambda: store.get_aquarium(aquarium_id, ctx.user_id),
        remove=lambda aquarium, expected: store.delete_aquarium(aquarium.id, expected),
        owner=Ownership(user_id=ctx.user_id, label="Aquarium"),
    )
    return Response(status_code=204)
