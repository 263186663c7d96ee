"""
Quote negotiation: one provider request, corrected and resent at most once when the
provider says the scheduled drop-off is too early.

    INIT -> REQUESTED -> SUCCESS
                      -> REJECTED -> NOT_RETRYABLE_ERROR         (no marker)
                                  -> RETRY_PARSE_FAILED          (marker, no usable time)
                                  -> RETRYING -> SUCCESS
                                              -> RETRY_FAILED

The corrected time comes from the provider's own error body (+5 s), never from the
schedule calculator. Where the time goes in the body differs per endpoint, so callers
pass a placement function.
"""
import asyncio
import copy
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable

from app.core.constants import INVALID_SCHEDULED_DROPOFF_TIME, RETRY_BUFFER_SECONDS
from app.core.errors import (
    STATUS_INTERNAL_ERROR,
    DeliveryError,
    ProviderNotConfigured,
    ProviderRejected,
    TransportFailure,
)
from app.services.api_log_service import ApiLogSink, make_log_entry, record_api_call
from app.services.scheduling import parse_iso_instant, to_iso_utc
from app.services.wolt.client import WoltResponse

logger = logging.getLogger(__name__)

# Strict ISO-8601 only; looser patterns picked up trailing punctuation from the sentence.
EARLIEST_DELIVERY_RE = re.compile(
    r"Earliest possible delivery at (\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d{3})?Z)"
)

SendFn = Callable[[dict[str, Any]], Awaitable[WoltResponse]]
TimePlacement = Callable[[dict[str, Any], str], dict[str, Any]]


class NegotiationState(str, Enum):
    INIT = "init"
    REQUESTED = "requested"
    SUCCESS = "success"
    REJECTED = "rejected"
    NOT_RETRYABLE_ERROR = "not_retryable_error"
    RETRY_PARSE_FAILED = "retry_parse_failed"
    RETRYING = "retrying"
    RETRY_FAILED = "retry_failed"


def place_dropoff_time(body: dict[str, Any], scheduled_time: str) -> dict[str, Any]:
    """Quote / available-venues bodies: top-level scheduled_dropoff_time."""
    return {**body, "scheduled_dropoff_time": scheduled_time}


def place_pickup_and_dropoff_time(body: dict[str, Any], scheduled_time: str) -> dict[str, Any]:
    """Delivery creation: pickup.options.scheduled_time and dropoff.options.scheduled_time."""
    out = copy.deepcopy(body)
    for leg in ("pickup", "dropoff"):
        section = out.get(leg)
        if not isinstance(section, dict):
            section = out[leg] = {}
        options = section.get("options")
        if not isinstance(options, dict):
            options = section["options"] = {}
        options["scheduled_time"] = scheduled_time
    return out


def _parse_direct_instant(value: Any) -> datetime | None:
    """earliest_scheduled_dropoff_time may use any ISO-8601 offset; naive values are UTC."""
    strict = parse_iso_instant(value)
    if strict is not None:
        return strict
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def extract_earliest_dropoff_time(payload: Any, text: str = "") -> datetime | None:
    """
    Earliest acceptable drop-off from a provider error.
    The direct field wins when present; otherwise the details sentence is searched.
    Plain-text bodies are searched as a whole.
    """
    if isinstance(payload, dict):
        direct = payload.get("earliest_scheduled_dropoff_time")
        if direct is not None:
            return _parse_direct_instant(direct)
        details = payload.get("details")
        haystack = details if isinstance(details, str) else ""
    else:
        haystack = text or ""
    m = EARLIEST_DELIVERY_RE.search(haystack)
    if not m:
        return None
    return parse_iso_instant(m.group(1))


class QuoteRejection:
    """Parsed non-2xx response. Lives only for one negotiation."""

    __slots__ = ("status_code", "text", "payload", "earliest")

    def __init__(self, status_code: int, text: str, payload: Any, earliest: datetime | None) -> None:
        self.status_code = status_code
        self.text = text
        self.payload = payload
        self.earliest = earliest

    @classmethod
    def from_response(cls, response: WoltResponse) -> "QuoteRejection":
        earliest = None
        if INVALID_SCHEDULED_DROPOFF_TIME in response.text:
            earliest = extract_earliest_dropoff_time(response.data, response.text)
        return cls(response.status_code, response.text, response.data, earliest)

    @property
    def is_schedule_conflict(self) -> bool:
        return INVALID_SCHEDULED_DROPOFF_TIME in self.text

    def corrected_time(self) -> str | None:
        if self.earliest is None:
            return None
        return to_iso_utc(self.earliest + timedelta(seconds=RETRY_BUFFER_SECONDS))


@dataclass
class NegotiationResult:
    data: Any
    status_code: int
    state: NegotiationState
    retried: bool
    scheduled_time: str | None  # time in the body that succeeded (corrected one after a retry)


async def send_logged(
    send: Callable[[], Awaitable[WoltResponse]],
    request_body: Any,
    *,
    log_sink: ApiLogSink | None,
    log_type: str,
    method: str,
    url: str,
) -> WoltResponse:
    """
    One provider call, appended to the log sink whatever the outcome.
    Sink writes run in a worker thread; the database sink does blocking I/O.
    """
    started = time.monotonic()
    try:
        response = await send()
    except DeliveryError as e:
        entry = make_log_entry(
            log_type, method, url, request_body, _failure_status(e), {"error": str(e)}, _elapsed_ms(started)
        )
        await asyncio.to_thread(record_api_call, log_sink, entry)
        raise
    entry = make_log_entry(
        log_type, method, url, request_body, response.status_code, response.body_for_log(), _elapsed_ms(started)
    )
    await asyncio.to_thread(record_api_call, log_sink, entry)
    return response


def _failure_status(exc: DeliveryError) -> int:
    # No provider response: 0 for transport failures, 500 for missing credentials.
    if isinstance(exc, ProviderNotConfigured):
        return STATUS_INTERNAL_ERROR
    return 0


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _success(response: WoltResponse, scheduled_time: str | None, retried: bool) -> NegotiationResult:
    if response.data is None:
        raise TransportFailure(f"Wolt API returned a non-JSON success body: {response.text[:200]}")
    return NegotiationResult(
        data=response.data,
        status_code=response.status_code,
        state=NegotiationState.SUCCESS,
        retried=retried,
        scheduled_time=scheduled_time,
    )


def _current_time(body: dict[str, Any]) -> str | None:
    if body.get("scheduled_dropoff_time"):
        return body["scheduled_dropoff_time"]
    options = (body.get("dropoff") or {}).get("options") if isinstance(body.get("dropoff"), dict) else None
    if isinstance(options, dict):
        return options.get("scheduled_time")
    return None


async def negotiate(
    send: SendFn,
    body: dict[str, Any],
    *,
    log_sink: ApiLogSink | None,
    log_type: str,
    url: str,
    placement: TimePlacement = place_dropoff_time,
) -> NegotiationResult:
    """
    Send body; on a too-early rejection, resend once with the provider's earliest time + 5 s.

    Raises ProviderRejected (original error when not retryable or when no time could be
    extracted; the retry's error with after_retry=True when the resend fails too) or
    TransportFailure (never retried).
    """
    response = await send_logged(
        lambda: send(body), body, log_sink=log_sink, log_type=log_type, method="POST", url=url
    )
    if response.is_success:
        return _success(response, _current_time(body), retried=False)

    rejection = QuoteRejection.from_response(response)
    if not rejection.is_schedule_conflict:
        logger.info("%s rejected (%s): %s", log_type, NegotiationState.NOT_RETRYABLE_ERROR.value, rejection.status_code)
        raise ProviderRejected(rejection.status_code, rejection.text)

    corrected = rejection.corrected_time()
    if corrected is None:
        logger.warning("%s: %s without a usable earliest time; not retrying", log_type, INVALID_SCHEDULED_DROPOFF_TIME)
        raise ProviderRejected(rejection.status_code, rejection.text, retryable=True)

    logger.info("%s: scheduled time too early, retrying once with %s", log_type, corrected)
    retry_body = placement(body, corrected)
    retry_response = await send_logged(
        lambda: send(retry_body), retry_body, log_sink=log_sink, log_type=log_type, method="POST", url=url
    )
    if retry_response.is_success:
        logger.info("%s: retry with corrected time succeeded", log_type)
        return _success(retry_response, corrected, retried=True)

    logger.warning("%s: retry failed (%s) with status %s", log_type, NegotiationState.RETRY_FAILED.value, retry_response.status_code)
    raise ProviderRejected(retry_response.status_code, retry_response.text, after_retry=True, retryable=True)
