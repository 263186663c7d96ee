"""HTTP tests for /delivery routes. Wolt is replaced by httpx.MockTransport via dependency overrides."""
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from app.api.routes.delivery import get_log_sink, get_schedule_context, get_wolt_client
from app.main import app
from app.services.api_log_service import InMemoryApiLogSink
from app.services.delivery_service import ScheduleContext
from app.services.scheduling import VenueSchedule
from app.services.scheduling.schedule import ISO_INSTANT_RE
from app.services.wolt.client import WoltClient
from app.services.wolt.config import WoltConfig
from conftest import ATHENS, TOO_EARLY_DETAILS

QUOTE = {"street": "Ermou 10", "city": "Athens", "post_code": "10563", "lat": 37.9755, "lon": 23.7348}


class ScriptedWolt:
    """MockTransport handler: replays (status, payload) pairs and records requests."""

    def __init__(self, *responses):
        self.responses = list(responses) or [(200, {"ok": True})]
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, payload = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(payload, str):
            return httpx.Response(status, text=payload)
        return httpx.Response(status, json=payload)

    def body(self, i: int) -> dict:
        return json.loads(self.requests[i].content)


def _config() -> WoltConfig:
    return WoltConfig(api_token="test-token", merchant_id="m-1", venue_id="v-1", is_development=True)


@pytest.fixture
def log_sink():
    return InMemoryApiLogSink()


@pytest.fixture
def make_client(log_sink):
    """TestClient wired to a scripted Wolt; call with the responses to replay."""

    def _make(*responses, config=None):
        wolt = ScriptedWolt(*responses)
        wolt_client = WoltClient(config or _config(), transport=httpx.MockTransport(wolt))
        app.dependency_overrides[get_wolt_client] = lambda: wolt_client
        app.dependency_overrides[get_log_sink] = lambda: log_sink
        app.dependency_overrides[get_schedule_context] = lambda: ScheduleContext(
            VenueSchedule(open_time="08:00", close_time="18:00"), ATHENS, 60
        )
        return TestClient(app), wolt

    yield _make
    app.dependency_overrides.clear()


def test_health():
    assert TestClient(app).get("/health").json() == {"status": "ok"}


def test_schedule_snapshot(make_client):
    client, _ = make_client()
    r = client.get("/delivery/schedule")
    assert r.status_code == 200
    data = r.json()
    assert data["timezone"] == ATHENS
    assert data["open_time"] == "08:00"
    assert len(data["dates"]) == 7
    assert data["time_slots"][0] == {"value": "08:00", "label": "08:00"}
    assert len(data["time_slots"]) == 19
    assert ISO_INSTANT_RE.match(data["default_scheduled_dropoff_time"])
    assert isinstance(data["ready_for_immediate_delivery"], bool)


def test_shipment_promise_fills_schedule_and_prep(make_client):
    client, wolt = make_client((200, {"id": "promise-1"}))
    r = client.post("/delivery/shipment-promises", json=QUOTE)
    assert r.status_code == 200
    assert r.json() == {"id": "promise-1"}
    sent = wolt.body(0)
    assert ISO_INSTANT_RE.match(sent["scheduled_dropoff_time"])
    assert sent["min_preparation_time_minutes"] == 60
    assert sent["street"] == "Ermou 10"
    assert wolt.requests[0].url.path == "/v1/venues/v-1/shipment-promises"


def test_shipment_promise_venue_override_not_forwarded(make_client):
    client, wolt = make_client((200, {"id": "promise-1"}))
    client.post("/delivery/shipment-promises", json={**QUOTE, "venue_id": "v-2"})
    assert wolt.requests[0].url.path == "/v1/venues/v-2/shipment-promises"
    assert "venue_id" not in wolt.body(0)


def test_shipment_promise_asap_sends_no_time(make_client):
    client, wolt = make_client((200, {"id": "promise-1"}))
    client.post("/delivery/shipment-promises", json={**QUOTE, "asap": True})
    sent = wolt.body(0)
    assert "scheduled_dropoff_time" not in sent
    assert "asap" not in sent


def test_shipment_promise_keeps_caller_time(make_client):
    client, wolt = make_client((200, {"id": "promise-1"}))
    client.post("/delivery/shipment-promises", json={**QUOTE, "scheduled_dropoff_time": "2030-01-01T10:00:00.000Z"})
    assert wolt.body(0)["scheduled_dropoff_time"] == "2030-01-01T10:00:00.000Z"


def test_shipment_promise_manual_slot(make_client):
    client, wolt = make_client((200, {"id": "promise-1"}))
    r = client.post(
        "/delivery/shipment-promises",
        json={**QUOTE, "scheduled_date": "2030-11-20", "scheduled_slot": "10:30"},
    )
    assert r.status_code == 200
    sent = wolt.body(0)
    assert sent["scheduled_dropoff_time"] == "2030-11-20T08:30:00.000Z"
    assert "scheduled_date" not in sent


def test_shipment_promise_invalid_manual_slot(make_client):
    client, wolt = make_client()
    r = client.post(
        "/delivery/shipment-promises",
        json={**QUOTE, "scheduled_date": "2030-11-20", "scheduled_slot": "17:45"},
    )
    assert r.status_code == 400
    assert wolt.requests == []


def test_shipment_promise_retry_through_route(make_client, log_sink):
    client, wolt = make_client(
        (400, {"error_code": "INVALID_SCHEDULED_DROPOFF_TIME", "details": TOO_EARLY_DETAILS}),
        (200, {"id": "promise-2"}),
    )
    r = client.post("/delivery/shipment-promises", json=QUOTE)
    assert r.status_code == 200
    assert r.json() == {"id": "promise-2"}
    assert len(wolt.requests) == 2
    assert wolt.body(1)["scheduled_dropoff_time"] == "2025-11-18T23:51:19.929Z"
    assert len(log_sink.list_recent()) == 2


def test_shipment_promise_retry_failure_has_hint(make_client):
    too_early = (400, {"error_code": "INVALID_SCHEDULED_DROPOFF_TIME", "details": TOO_EARLY_DETAILS})
    client, wolt = make_client(too_early, too_early)
    r = client.post("/delivery/shipment-promises", json=QUOTE)
    assert r.status_code == 400
    detail = r.json()["detail"]
    assert detail["error"].startswith("Wolt API error after retry: ")
    assert "hint" in detail
    assert len(wolt.requests) == 2


def test_provider_error_status_is_passed_through(make_client):
    client, wolt = make_client((422, {"error_code": "INVALID_ADDRESS"}))
    r = client.post("/delivery/shipment-promises", json=QUOTE)
    assert r.status_code == 422
    assert r.json()["detail"]["error"].startswith("Wolt API error: ")
    assert len(wolt.requests) == 1


def test_missing_config_is_500(make_client):
    config = _config()
    config.api_token = ""
    client, wolt = make_client(config=config)
    r = client.post("/delivery/shipment-promises", json=QUOTE)
    assert r.status_code == 500
    assert r.json()["detail"]["error"] == "Missing API configuration"
    assert wolt.requests == []


def test_shipment_promise_requires_address(make_client):
    client, _ = make_client()
    r = client.post("/delivery/shipment-promises", json={"city": "Athens"})
    assert r.status_code == 422


def test_available_venues(make_client):
    client, wolt = make_client((200, [{"pickup": {"venue_id": "v-1"}}]))
    r = client.post("/delivery/available-venues", json={"dropoff": {"location": {"formatted_address": "Ermou 10"}}})
    assert r.status_code == 200
    assert wolt.requests[0].url.path == "/merchants/m-1/available-venues"
    assert "scheduled_dropoff_time" in wolt.body(0)


def test_create_delivery_sets_both_leg_times(make_client):
    client, wolt = make_client((201, {"id": "delivery-1", "tracking": {"url": "https://track"}}))
    body = {
        "pickup": {"location": {"formatted_address": "Venue"}},
        "dropoff": {"location": {"formatted_address": "Ermou 10"}},
        "price": {"amount": 450, "currency": "EUR"},
    }
    r = client.post("/delivery/deliveries", json=body)
    assert r.status_code == 200
    assert r.json()["id"] == "delivery-1"
    sent = wolt.body(0)
    pickup_time = sent["pickup"]["options"]["scheduled_time"]
    assert ISO_INSTANT_RE.match(pickup_time)
    assert sent["dropoff"]["options"]["scheduled_time"] == pickup_time
    assert sent["pickup"]["location"] == {"formatted_address": "Venue"}


def test_create_delivery_retry(make_client):
    client, wolt = make_client(
        (400, {"error_code": "INVALID_SCHEDULED_DROPOFF_TIME", "details": TOO_EARLY_DETAILS}),
        (201, {"id": "delivery-2"}),
    )
    r = client.post("/delivery/deliveries", json={"price": {"amount": 450, "currency": "EUR"}})
    assert r.status_code == 200
    retry = wolt.body(1)
    assert retry["pickup"]["options"]["scheduled_time"] == "2025-11-18T23:51:19.929Z"
    assert retry["dropoff"]["options"]["scheduled_time"] == "2025-11-18T23:51:19.929Z"


def test_list_deliveries(make_client, log_sink):
    client, wolt = make_client((200, [{"id": "delivery-1"}]))
    r = client.get("/delivery/deliveries", params={"limit": 5})
    assert r.status_code == 200
    assert r.json() == [{"id": "delivery-1"}]
    assert wolt.requests[0].url.params["limit"] == "5"
    assert log_sink.list_recent()[0]["type"] == "list-deliveries"


def test_cancel_delivery(make_client, log_sink):
    client, wolt = make_client((200, {"status": "cancelled"}))
    r = client.patch("/delivery/deliveries/ref-9/cancel", json={"reason": "Customer request"})
    assert r.status_code == 200
    assert wolt.requests[0].url.path == "/order/ref-9/status/cancel"
    assert wolt.body(0) == {"reason": "Customer request"}
    assert log_sink.list_recent()[0]["type"] == "cancel-delivery"


def test_cancel_delivery_requires_reason(make_client):
    client, wolt = make_client()
    r = client.patch("/delivery/deliveries/ref-9/cancel", json={"reason": ""})
    assert r.status_code == 422
    assert wolt.requests == []


def test_cancel_delivery_provider_error(make_client):
    client, _ = make_client((409, {"error_code": "ALREADY_PICKED_UP"}))
    r = client.patch("/delivery/deliveries/ref-9/cancel", json={"reason": "Too late"})
    assert r.status_code == 409


def test_transport_failure_is_502(make_client):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    make_client()
    failing = WoltClient(_config(), transport=httpx.MockTransport(handler))
    app.dependency_overrides[get_wolt_client] = lambda: failing
    r = TestClient(app).post("/delivery/shipment-promises", json=QUOTE)
    assert r.status_code == 502


def test_logs_list_and_clear(make_client):
    client, _ = make_client((200, {"id": "promise-1"}))
    client.post("/delivery/shipment-promises", json=QUOTE)
    client.post("/delivery/shipment-promises", json=QUOTE)
    r = client.get("/delivery/logs")
    assert r.status_code == 200
    assert r.json()["count"] == 2
    assert r.json()["logs"][0]["response"]["status"] == 200

    r = client.delete("/delivery/logs")
    assert r.json() == {"message": "Logs cleared successfully", "cleared": 2}
    assert client.get("/delivery/logs").json() == {"logs": [], "count": 0}


@pytest.mark.parametrize(
    "body",
    [
        {"dropoff": "Ermou 10"},
        {"pickup": ["Venue"]},
        {"dropoff": {"options": "tomorrow"}},
    ],
)
def test_create_delivery_rejects_non_object_legs(make_client, body):
    client, wolt = make_client()
    r = client.post("/delivery/deliveries", json=body)
    assert r.status_code == 400
    assert "must be an object" in r.json()["detail"]["error"]
    assert wolt.requests == []


def test_create_delivery_manual_slot(make_client):
    client, wolt = make_client((201, {"id": "delivery-3"}))
    r = client.post(
        "/delivery/deliveries",
        json={"price": {"amount": 450, "currency": "EUR"}, "scheduled_date": "2030-11-20", "scheduled_slot": "10:30"},
    )
    assert r.status_code == 200
    sent = wolt.body(0)
    assert sent["pickup"]["options"]["scheduled_time"] == "2030-11-20T08:30:00.000Z"
    assert sent["dropoff"]["options"]["scheduled_time"] == "2030-11-20T08:30:00.000Z"
    assert "scheduled_slot" not in sent


@pytest.mark.parametrize(
    "path,selection",
    [
        ("/delivery/shipment-promises", {"scheduled_date": "2030-11-20"}),
        ("/delivery/shipment-promises", {"scheduled_slot": "10:30"}),
        ("/delivery/available-venues", {"scheduled_date": "2030-11-20"}),
        ("/delivery/deliveries", {"scheduled_slot": "10:30"}),
    ],
)
def test_partial_manual_selection_is_rejected(make_client, path, selection):
    client, wolt = make_client()
    r = client.post(path, json={**QUOTE, **selection})
    assert r.status_code == 400
    assert "scheduled_date and scheduled_slot" in r.json()["detail"]["error"]
    assert wolt.requests == []


def test_missing_config_is_logged(make_client, log_sink):
    config = _config()
    config.api_token = ""
    client, _ = make_client(config=config)
    client.post("/delivery/shipment-promises", json=QUOTE)
    (entry,) = log_sink.list_recent()
    assert entry["response"]["status"] == 500
