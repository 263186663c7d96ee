"""
Delivery: schedule snapshot, available venues, shipment promises (quotes), deliveries, API call log.

Bodies are forwarded to Wolt Drive mostly as-is; scheduled times are filled from venue hours
unless the caller sets one or asks for ASAP.
"""
import logging
from typing import Any, NoReturn

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from app.config import settings
from app.core.constants import API_LOG_LIST_LIMIT, DEFAULT_DAYS_AHEAD
from app.core.errors import DeliveryError, InvalidConfiguration, delivery_error_to_http
from app.services import delivery_service
from app.services.api_log_service import ApiLogSink
from app.services.delivery_service import ScheduleContext
from app.services.scheduling import (
    default_venue_schedule,
    enumerate_delivery_dates,
    enumerate_time_slots,
    is_ready_for_immediate_delivery,
    is_venue_open,
    manual_scheduled_dropoff,
    minutes_until_close,
)
from app.services.wolt import WoltClient, default_client

router = APIRouter()
logger = logging.getLogger(__name__)


def get_wolt_client(request: Request) -> WoltClient:
    return getattr(request.app.state, "wolt_client", None) or default_client


def get_log_sink(request: Request) -> ApiLogSink | None:
    return getattr(request.app.state, "api_log_sink", None)


def get_schedule_context() -> ScheduleContext:
    try:
        return ScheduleContext(
            default_venue_schedule(), settings.venue_timezone, settings.preparation_time_minutes
        )
    except DeliveryError as exc:
        _handle_delivery_error(exc, "Invalid venue schedule configuration")


def _handle_delivery_error(exc: DeliveryError, log_message: str) -> NoReturn:
    logger.warning("%s: %s", log_message, exc)
    raise delivery_error_to_http(exc) from exc


class _Forwarded(BaseModel):
    """Provider body; unknown fields are kept and sent on."""
    model_config = ConfigDict(extra="allow")

    asap: bool = Field(default=False, description="Do not add a scheduled time (deliver as soon as possible)")
    scheduled_date: str | None = Field(default=None, description="Manual schedule: venue-local YYYY-MM-DD")
    scheduled_slot: str | None = Field(default=None, description="Manual schedule: HH:mm from /schedule slots")

    def provider_body(self) -> dict[str, Any]:
        return self.model_dump(exclude={"asap", "scheduled_date", "scheduled_slot"}, exclude_none=True)


class ShipmentPromiseBody(_Forwarded):
    street: str
    city: str
    post_code: str
    lat: float
    lon: float
    language: str = "en"
    min_preparation_time_minutes: int | None = None
    scheduled_dropoff_time: str | None = None
    venue_id: str | None = None


class CancelBody(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)


def _manual_time(body: _Forwarded, ctx: ScheduleContext) -> str | None:
    """Manual selection needs both date and slot; one without the other is rejected."""
    if not body.scheduled_date and not body.scheduled_slot:
        return None
    if not (body.scheduled_date and body.scheduled_slot):
        raise InvalidConfiguration("Manual scheduling needs both scheduled_date and scheduled_slot.")
    return manual_scheduled_dropoff(body.scheduled_date, body.scheduled_slot, ctx.schedule, ctx.timezone)


@router.get("/schedule")
def get_schedule(
    days_ahead: int = Query(DEFAULT_DAYS_AHEAD, ge=0, le=31),
    ctx: ScheduleContext = Depends(get_schedule_context),
) -> dict[str, Any]:
    """Venue hours snapshot for checkout: readiness, default drop-off, dates and slots for manual scheduling."""
    return {
        "open_time": ctx.schedule.open_time,
        "close_time": ctx.schedule.close_time,
        "timezone": ctx.timezone,
        "preparation_time_minutes": ctx.prep_minutes,
        "is_open": is_venue_open(ctx.schedule, ctx.timezone),
        "minutes_until_close": minutes_until_close(ctx.schedule, ctx.timezone),
        "ready_for_immediate_delivery": is_ready_for_immediate_delivery(ctx.schedule, ctx.timezone),
        "default_scheduled_dropoff_time": ctx.default_dropoff(),
        "dates": list(enumerate_delivery_dates(days_ahead, ctx.timezone)),
        "time_slots": list(enumerate_time_slots(ctx.schedule)),
    }


@router.post("/available-venues")
async def available_venues(
    body: _Forwarded,
    client: WoltClient = Depends(get_wolt_client),
    log_sink: ApiLogSink | None = Depends(get_log_sink),
    ctx: ScheduleContext = Depends(get_schedule_context),
):
    try:
        payload = body.provider_body()
        manual = _manual_time(body, ctx)
        if manual:
            payload["scheduled_dropoff_time"] = manual
        result = await delivery_service.request_available_venues(
            client, payload, log_sink=log_sink, ctx=ctx, asap=body.asap
        )
    except DeliveryError as exc:
        _handle_delivery_error(exc, "Available venues failed")
    return result.data


@router.post("/shipment-promises")
async def shipment_promises(
    body: ShipmentPromiseBody,
    client: WoltClient = Depends(get_wolt_client),
    log_sink: ApiLogSink | None = Depends(get_log_sink),
    ctx: ScheduleContext = Depends(get_schedule_context),
):
    """Delivery quote. Retries once with Wolt's earliest time if the scheduled time is too early."""
    try:
        payload = body.provider_body()
        manual = _manual_time(body, ctx)
        if manual:
            payload["scheduled_dropoff_time"] = manual
        result = await delivery_service.request_shipment_promise(
            client, payload, log_sink=log_sink, ctx=ctx, asap=body.asap
        )
    except DeliveryError as exc:
        _handle_delivery_error(exc, "Shipment promise failed")
    return result.data


@router.post("/deliveries")
async def create_delivery(
    body: _Forwarded,
    client: WoltClient = Depends(get_wolt_client),
    log_sink: ApiLogSink | None = Depends(get_log_sink),
    ctx: ScheduleContext = Depends(get_schedule_context),
):
    try:
        result = await delivery_service.create_delivery(
            client,
            body.provider_body(),
            log_sink=log_sink,
            ctx=ctx,
            asap=body.asap,
            scheduled_time=_manual_time(body, ctx),
        )
    except DeliveryError as exc:
        _handle_delivery_error(exc, "Create delivery failed")
    return result.data


@router.get("/deliveries")
async def list_deliveries(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    client: WoltClient = Depends(get_wolt_client),
    log_sink: ApiLogSink | None = Depends(get_log_sink),
):
    try:
        return await delivery_service.list_deliveries(client, log_sink=log_sink, limit=limit, offset=offset)
    except DeliveryError as exc:
        _handle_delivery_error(exc, "List deliveries failed")


@router.patch("/deliveries/{reference_id}/cancel")
async def cancel_delivery(
    reference_id: str,
    body: CancelBody,
    client: WoltClient = Depends(get_wolt_client),
    log_sink: ApiLogSink | None = Depends(get_log_sink),
):
    try:
        return await delivery_service.cancel_delivery(client, reference_id, body.reason, log_sink=log_sink)
    except DeliveryError as exc:
        _handle_delivery_error(exc, "Cancel delivery failed")


@router.get("/logs")
def list_logs(
    limit: int = Query(API_LOG_LIST_LIMIT, ge=1, le=500),
    log_sink: ApiLogSink | None = Depends(get_log_sink),
) -> dict[str, Any]:
    """Recent outbound API calls, newest first."""
    logs = log_sink.list_recent(limit) if log_sink is not None else []
    return {"logs": logs, "count": len(logs)}


@router.delete("/logs")
def clear_logs(log_sink: ApiLogSink | None = Depends(get_log_sink)) -> dict[str, Any]:
    cleared = log_sink.clear() if log_sink is not None else 0
    return {"message": "Logs cleared successfully", "cleared": cleared}
