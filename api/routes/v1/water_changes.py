"""
api/routes/v1/water_changes.py -- Water change log for one aquarium.

Routes:
  GET    /api/v1/aquariums/{aquarium_id}/waterchanges
  POST   /api/v1/aquariums/{aquarium_id}/waterchanges
  GET    /api/v1/aquariums/{aquarium_id}/waterchanges/{water_change_id}
  PUT    /api/v1/aquariums/{aquarium_id}/waterchanges/{water_change_id}
  DELETE /api/v1/aquariums/{aquarium_id}/waterchanges/{water_change_id}

Same ownership rules as measurements.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool

from api.models import WaterChangeBody, WaterChangeResponse
from api.routes.v1.aquariums import require_aquarium
from auth.dependencies import get_request_context
from core.concurrency import Ownership, check_ownership, guarded_delete, guarded_update
from core.context import RequestContext
from core.errors import NotFound
from core.etag import format_etag
from core.validation import ensure_valid
from records.models import WaterChange
from records.store import RecordStore

router = APIRouter()

_PREFIX = "/aquariums/{aquarium_id}/waterchanges"


def _owner(ctx: RequestContext, aquarium_id: int) -> Ownership:
    return Ownership(user_id=ctx.user_id, aquarium_id=aquarium_id, label="Water Change")


@router.get(_PREFIX, response_model=list[WaterChangeResponse])
async def list_water_changes(
    request: Request,
    aquarium_id: int,
    ctx: RequestContext = Depends(get_request_context),
) -> list[WaterChangeResponse]:
    store: RecordStore = request.app.state.record_store
    await require_aquarium(store, ctx, aquarium_id)
    rows = await run_in_threadpool(store.list_water_changes, ctx.user_id, aquarium_id)
    return [WaterChangeResponse.from_water_change(w) for w in rows]


@router.post(_PREFIX, response_model=WaterChangeResponse, status_code=201)
async def create_water_change(
    request: Request,
    response: Response,
    aquarium_id: int,
    body: WaterChangeBody,
    ctx: RequestContext = Depends(get_request_context),
) -> WaterChangeResponse:
    store: RecordStore = request.app.state.record_store
    await require_aquarium(store, ctx, aquarium_id)
    water_change = body.apply_to(WaterChange(user_id=ctx.user_id, aquarium_id=aquarium_id, changed_at="", percentage=0.0))
    ensure_valid(water_change)
    water_change_id = await run_in_threadpool(store.create_water_change, water_change)

    created = await run_in_threadpool(store.get_water_change, water_change_id)
    response.headers["ETag"] = format_etag(created.row_version)
    response.headers["Location"] = f"/api/v1/aquariums/{aquarium_id}/waterchanges/{water_change_id}"
    return WaterChangeResponse.from_water_change(created)


@router.get(_PREFIX + "/{water_change_id}", response_model=WaterChangeResponse)
async def get_water_change(
    request: Request,
    response: Response,
    aquarium_id: int,
    water_change_id: int,
    ctx: RequestContext = Depends(get_request_context),
) -> WaterChangeResponse:
    store: RecordStore = request.app.state.record_store
    await require_aquarium(store, ctx, aquarium_id)
    water_change = await run_in_threadpool(store.get_water_change, water_change_id)
    if water_change is None:
        raise NotFound("Water change not found.")
    check_ownership(water_change, _owner(ctx, aquarium_id))
    response.headers["ETag"] = format_etag(water_change.row_version)
    return WaterChangeResponse.from_water_change(water_change)


@router.put(_PREFIX + "/{water_change_id}", response_model=WaterChangeResponse)
async def update_water_change(
    request: Request,
    response: Response,
    aquarium_id: int,
    water_change_id: int,
    body: WaterChangeBody,
    ctx: RequestContext = Depends(get_request_context),
) -> WaterChangeResponse:
    store: RecordStore = request.app.state.record_store
    await require_aquarium(store, ctx, aquarium_id)
    result = await guarded_update(
        ctx,
        fetch=lambda: store.get_water_change(water_change_id),
        write=store.update_water_change,
        apply=body.apply_to,
        owner=_owner(ctx, aquarium_id),
    )
    response.headers["ETag"] = result.etag
    return WaterChangeResponse.from_water_change(result.entity)


@router.delete(_PREFIX + "/{water_change_id}", status_code=204)
async def delete_water_change(
    request: Request,
    aquarium_id: int,
    water_change_id: int,
    ctx: RequestContext = Depends(get_request_context),
) -> Response:
    store: RecordStore = request.app.state.record_store
    await require_aquarium(store, ctx, aquarium_id)
    await guarded_delete(
        ctx,
        fetch=lambda: store.get_water_change(water_change_id),
        remove=lambda water_change, expected: store.delete_water_change(water_change.id, expected),
        owner=_owner(ctx, aquarium_id),
    )
    return Response(status_code=204)
