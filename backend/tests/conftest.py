"""
Pytest configuration and fixtures for the delivery backend tests.

Provider calls never leave the process: a scripted fake (FakeProvider) or httpx.MockTransport
stands in for Wolt Drive.
"""
import json
import pathlib
import sys
from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.services.scheduling import VenueSchedule  # noqa: E402
from app.services.wolt.client import WoltResponse  # noqa: E402

ATHENS = "Europe/Athens"

TOO_EARLY_DETAILS = (
    "Scheduled time (2025-11-18T23:31:14.456Z) is too early. "
    "Earliest possible delivery at 2025-11-18T23:51:14.929Z."
)


class FakeProvider:
    """Async send() that replays scripted responses and records every body it was given."""

    def __init__(self, *responses: WoltResponse):
        self._responses = list(responses)
        self.calls: list[dict] = []

    async def send(self, body: dict) -> WoltResponse:
        self.calls.append(body)
        if not self._responses:
            raise AssertionError("FakeProvider called more times than scripted")
        return self._responses.pop(0)


def json_response(status_code: int, payload) -> WoltResponse:
    return WoltResponse(status_code, json.dumps(payload), payload)


@pytest.fixture
def athens_time():
    """Build an aware datetime in venue-local (Europe/Athens) time."""

    def _make(year, month, day, hour, minute=0, second=0, microsecond=0):
        return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=ZoneInfo(ATHENS))

    return _make


@pytest.fixture
def schedule() -> VenueSchedule:
    return VenueSchedule(open_time="08:00", close_time="18:00")


@pytest.fixture
def too_early_response() -> WoltResponse:
    return json_response(
        400,
        {"error_code": "INVALID_SCHEDULED_DROPOFF_TIME", "details": TOO_EARLY_DETAILS},
    )
