"""
api/routes/v1/measurements.py -- Water parameter readings for one aquarium.

Routes:
  GET    /api/v1/aquariums/{aquarium_id}/measurements
  POST   /api/v1/aquariums/{aquarium_id}/measurements
  GET    /api/v1/aquariums/{aquarium_id}/measurements/{measurement_id}
  PUT    /api/v1/aquariums/{aquarium_id}/measurements/{measurement_id}
  DELETE /api/v1/aquariums/{aquarium_id}/measurements/{measurement_id}

The aquarium must belong to the caller (404 otherwise). A measurement whose
user or aquarium differs from the path is rejected with 400.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.concurrency import run_in_threadpool

from api.models import MeasurementBody, MeasurementResponse
from api.routes.v1.aquariums import require_aquarium
from auth.dependencies import get_request_context
from core.concurrency import Ownership, check_ownership, guarded_delete, guarded_update
from core.context import RequestContext
from core.errors import NotFound
from core.etag import format_etag
from core.validation import ensure_valid
from records.models import Measurement
from records.store import RecordStore

router = APIRouter()

_PREFIX = "/aquariums/{aquarium_id}/measurements"


def _owner(ctx: RequestContext, aquarium_id: int) -> Ownership:
    return Ownership(user_id=ctx.user_id, aquarium_id=aquarium_id, label="Measurement")


@router.get(_PREFIX, response_model=list[MeasurementResponse])
async def list_measurements(
    request: Request,
    aquarium_id: int,
    ctx: RequestContext = Depends(get_request_context),
) -> list[MeasurementResponse]:
    """Newest reading first."""
    store: RecordStore = request.app.state.record_store
    await require_aquarium(store, ctx, aquarium_id)
    rows = await run_in_threadpool(store.list_measurements, ctx.user_id, aquarium_id)
    return [MeasurementResponse.from_measurement(m) for m in rows]


@router.post(_PREFIX, response_model=MeasurementResponse, status_code=201)
async def create_measurement(
    request: Request,
    response: Response,
    aquarium_id: int,
    body: MeasurementBody,
    ctx: RequestContext = Depends(get_request_context),
) -> MeasurementResponse:
    store: RecordStore = request.app.state.record_store
    await require_aquarium(store, ctx, aquarium_id)
    measurement = body.apply_to(
        Measurement(user_id=ctx.user_id, aquarium_id=aquarium_id, measurement_type="", value=0.0, unit="", taken_at="")
    )
    ensure_valid(measurement)
    measurement_id = await run_in_threadpool(store.create_measurement, measurement)

    created = await run_in_threadpool(store.get_measurement, measurement_id)
    response.headers["ETag"] = format_etag(created.row_version)
    response.headers["Location"] = f"/api/v1/aquariums/{aquarium_id}/measurements/{measurement_id}"
    return MeasurementResponse.from_measurement(created)


@router.get(_PREFIX + "/{measurement_id}", response_model=MeasurementResponse)
async def get_measurement(
    request: Request,
    response: Response,
    aquarium_id: int,
    measurement_id: int,
    ctx: RequestContext = Depends(get_request_context),
) -> MeasurementResponse:
    store: RecordStore = request.app.state.record_store
    await require_aquarium(store, ctx, aquarium_id)
    measurement = await run_in_threadpool(store.get_measurement, measurement_id)
    if measurement is None:
        raise NotFound("Measurement not found.")
    check_ownership(measurement, _owner(ctx, aquarium_id))
    response.headers["ETag"] = format_etag(measurement.row_version)
    return MeasurementResponse.from_measurement(measurement)


@router.put(_PREFIX + "/{measurement_id}", response_model=MeasurementResponse)
async def update_measurement(
    request: Request,
    response: Response,
    aquarium_id: int,
    measurement_id: int,
    body: MeasurementBody,
    ctx: RequestContext = Depends(get_request_context),
) -> MeasurementResponse:
    store: RecordStore = request.app.state.record_store
    await require_aquarium(store, ctx, aquarium_id)
    result = await guarded_update(
        ctx,
        fetch=lambda: store.get_measurement(measurement_id),
        write=store.update_measurement,
        apply=body.apply_to,
        owner=_owner(ctx, aquarium_id),
    )
    response.headers["ETag"] = result.etag
    return MeasurementResponse.from_measurement(result.entity)


@router.delete(_PREFIX + "/{measurement_id}", status_code=204)
async def delete_measurement(
    request: Request,
    aquarium_id: int,
    measurement_id: int,
    ctx: RequestContext = Depends(get_request_context),
) -> Response:
    store: RecordStore = request.app.state.record_store
    await require_aquarium(store, ctx, aquarium_id)
    await guarded_delete(
        ctx,
        fetch=lambda: store.get_measurement(measurement_id),
        remove=lambda measurement, expected: store.delete_measurement(measurement.id, expected),
        owner=_owner(ctx, aquarium_id),
    )
    return Response(status_code=204)
