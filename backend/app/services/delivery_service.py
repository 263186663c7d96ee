"""
Checkout-facing delivery operations: fill in the scheduled time, negotiate with Wolt, log every call.

Routes call these; they own no state. The client and the log sink are passed in.
"""
import logging
from datetime import datetime
from typing import Any

from app.core.constants import (
    LOG_TYPE_AVAILABLE_VENUES,
    LOG_TYPE_CANCEL_DELIVERY,
    LOG_TYPE_CREATE_DELIVERY,
    LOG_TYPE_LIST_DELIVERIES,
    LOG_TYPE_SHIPMENT_PROMISE,
)
from app.core.errors import InvalidConfiguration, ProviderRejected
from app.services.api_log_service import ApiLogSink
from app.services.negotiation import (
    NegotiationResult,
    negotiate,
    place_dropoff_time,
    place_pickup_and_dropoff_time,
    send_logged,
)
from app.services.scheduling import VenueSchedule, compute_scheduled_dropoff
from app.services.wolt.client import WoltClient

logger = logging.getLogger(__name__)


class ScheduleContext:
    """Venue hours + timezone + preparation time used to pick a default drop-off."""

    __slots__ = ("schedule", "timezone", "prep_minutes")

    def __init__(self, schedule: VenueSchedule, timezone: str, prep_minutes: int) -> None:
        self.schedule = schedule
        self.timezone = timezone
        self.prep_minutes = prep_minutes

    def default_dropoff(self, now: datetime | None = None) -> str:
        return compute_scheduled_dropoff(self.schedule, self.timezone, self.prep_minutes, now)


def _with_default_dropoff(
    body: dict[str, Any],
    ctx: ScheduleContext | None,
    *,
    asap: bool,
    now: datetime | None,
) -> dict[str, Any]:
    """Add scheduled_dropoff_time from venue hours unless the caller set one or asked for ASAP."""
    if asap or body.get("scheduled_dropoff_time") or ctx is None:
        return body
    return place_dropoff_time(body, ctx.default_dropoff(now))


async def request_available_venues(
    client: WoltClient,
    body: dict[str, Any],
    *,
    log_sink: ApiLogSink | None,
    ctx: ScheduleContext | None = None,
    asap: bool = False,
    now: datetime | None = None,
) -> NegotiationResult:
    """Venues able to serve the dropoff address at the scheduled time."""
    payload = _with_default_dropoff(dict(body), ctx, asap=asap, now=now)
    return await negotiate(
        client.available_venues,
        payload,
        log_sink=log_sink,
        log_type=LOG_TYPE_AVAILABLE_VENUES,
        url=f"/merchants/{client.config.merchant_id}/available-venues",
    )


async def request_shipment_promise(
    client: WoltClient,
    body: dict[str, Any],
    *,
    log_sink: ApiLogSink | None,
    ctx: ScheduleContext | None = None,
    asap: bool = False,
    now: datetime | None = None,
) -> NegotiationResult:
    """Price/time quote. venue_id in the body selects the venue and is not sent to Wolt."""
    payload = {k: v for k, v in body.items() if k != "venue_id"}
    venue_id = body.get("venue_id") or client.config.venue_id
    if ctx is not None and "min_preparation_time_minutes" not in payload:
        payload["min_preparation_time_minutes"] = ctx.prep_minutes
    payload = _with_default_dropoff(payload, ctx, asap=asap, now=now)

    async def send(b: dict[str, Any]):
        return await client.shipment_promise(b, venue_id=venue_id)

    return await negotiate(
        send,
        payload,
        log_sink=log_sink,
        log_type=LOG_TYPE_SHIPMENT_PROMISE,
        url=f"/v1/venues/{venue_id}/shipment-promises",
    )


def _check_legs(body: dict[str, Any]) -> None:
    """pickup / dropoff and their options must be objects when present; times are written into them."""
    for leg in ("pickup", "dropoff"):
        section = body.get(leg)
        if section is None:
            continue
        if not isinstance(section, dict):
            raise InvalidConfiguration(f"{leg} must be an object, got {type(section).__name__}.")
        options = section.get("options")
        if options is not None and not isinstance(options, dict):
            raise InvalidConfiguration(f"{leg}.options must be an object, got {type(options).__name__}.")


def _with_default_leg_times(
    body: dict[str, Any],
    ctx: ScheduleContext | None,
    *,
    asap: bool,
    now: datetime | None,
) -> dict[str, Any]:
    if asap or ctx is None:
        return body
    dropoff_options = (body.get("dropoff") or {}).get("options") or {}
    if dropoff_options.get("scheduled_time"):
        return body
    return place_pickup_and_dropoff_time(body, ctx.default_dropoff(now))


async def create_delivery(
    client: WoltClient,
    body: dict[str, Any],
    *,
    log_sink: ApiLogSink | None,
    ctx: ScheduleContext | None = None,
    asap: bool = False,
    scheduled_time: str | None = None,
    now: datetime | None = None,
) -> NegotiationResult:
    """
    Book the delivery. scheduled_time (a manual selection) or the default from venue hours
    goes to both pickup and dropoff options, as does a corrected time on retry.
    """
    _check_legs(body)
    payload = {k: v for k, v in body.items() if k != "venue_id"}
    venue_id = body.get("venue_id") or client.config.venue_id
    if scheduled_time:
        payload = place_pickup_and_dropoff_time(payload, scheduled_time)
    else:
        payload = _with_default_leg_times(payload, ctx, asap=asap, now=now)

    async def send(b: dict[str, Any]):
        return await client.create_delivery(b, venue_id=venue_id)

    result = await negotiate(
        send,
        payload,
        log_sink=log_sink,
        log_type=LOG_TYPE_CREATE_DELIVERY,
        url=f"/v1/venues/{venue_id}/deliveries",
        placement=place_pickup_and_dropoff_time,
    )
    logger.info(
        "Created delivery %s (retried=%s)",
        (result.data or {}).get("id") if isinstance(result.data, dict) else None,
        result.retried,
    )
    return result


async def list_deliveries(
    client: WoltClient,
    *,
    log_sink: ApiLogSink | None,
    limit: int = 20,
    offset: int = 0,
) -> Any:
    """Plain forwarding; no negotiation."""
    params = {"limit": limit, "offset": offset}
    response = await send_logged(
        lambda: client.list_deliveries(limit, offset),
        params,
        log_sink=log_sink,
        log_type=LOG_TYPE_LIST_DELIVERIES,
        method="GET",
        url=f"/v1/venues/{client.config.venue_id}/deliveries",
    )
    if not response.is_success:
        raise ProviderRejected(response.status_code, response.text)
    return response.data


async def cancel_delivery(
    client: WoltClient,
    reference_id: str,
    reason: str,
    *,
    log_sink: ApiLogSink | None,
) -> Any:
    body = {"reason": reason}
    response = await send_logged(
        lambda: client.cancel_delivery(reference_id, body),
        body,
        log_sink=log_sink,
        log_type=LOG_TYPE_CANCEL_DELIVERY,
        method="PATCH",
        url=f"/order/{reference_id}/status/cancel",
    )
    if not response.is_success:
        raise ProviderRejected(response.status_code, response.text)
    return response.data if response.data is not None else {"message": response.text}
