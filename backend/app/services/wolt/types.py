"""
Typed definitions for Wolt Drive API requests and responses.

Only the fields the storefront reads or writes are listed; the provider may send more.
Scheduled times are ISO-8601 UTC strings (e.g. "2025-11-18T23:51:19.929Z").
"""

from typing import Any, TypedDict


class Coordinates(TypedDict):
    lat: float
    lon: float


class Location(TypedDict, total=False):
    formatted_address: str
    coordinates: Coordinates


class Price(TypedDict):
    amount: int  # minor units (cents)
    currency: str


class AvailableVenuesRequest(TypedDict, total=False):
    """POST /merchants/{merchant_id}/available-venues."""
    dropoff: dict[str, Any]  # { "location": { "formatted_address": ... } }
    scheduled_dropoff_time: str


class ShipmentPromiseRequest(TypedDict, total=False):
    """POST /v1/venues/{venue_id}/shipment-promises (the delivery quote)."""
    street: str
    city: str
    post_code: str
    lat: float
    lon: float
    language: str
    min_preparation_time_minutes: int
    scheduled_dropoff_time: str


class ShipmentPromiseResponse(TypedDict, total=False):
    id: str
    fee: Price
    estimated_pickup_time: str
    estimated_delivery_time: str
    distance_meters: int


class PickupOptions(TypedDict, total=False):
    min_preparation_time_minutes: int
    scheduled_time: str


class DropoffOptions(TypedDict, total=False):
    is_no_contact: bool
    scheduled_time: str


class CreateDeliveryRequest(TypedDict, total=False):
    """POST /v1/venues/{venue_id}/deliveries. Pickup and dropoff carry the same scheduled_time."""
    pickup: dict[str, Any]  # { "options": PickupOptions, "comment": str }
    dropoff: dict[str, Any]  # { "location": {...}, "comment": str, "options": DropoffOptions }
    price: Price
    recipient: dict[str, Any]
    parcels: list[dict[str, Any]]
    shipment_promise_id: str
    customer_support: dict[str, Any]
    merchant_order_reference_id: str
    order_number: str
    sms_notifications: dict[str, str]
    handshake_delivery: dict[str, bool]


class CancelDeliveryRequest(TypedDict):
    reason: str


class ProviderErrorBody(TypedDict, total=False):
    """
    Error body. A too-early schedule looks like:
      {"error_code": "INVALID_SCHEDULED_DROPOFF_TIME",
       "details": "Scheduled time (...) is too early. Earliest possible delivery at 2025-11-18T23:51:14.929Z."}
    Some responses carry earliest_scheduled_dropoff_time directly instead.
    """
    error_code: str
    reason: str
    details: str
    earliest_scheduled_dropoff_time: str
