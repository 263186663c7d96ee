"""Wolt Drive API client: venues, shipment promises (quotes) and deliveries."""
from app.config import settings
from app.services.wolt.client import WoltClient, WoltResponse
from app.services.wolt.config import WoltConfig
from app.services.wolt.types import (
    AvailableVenuesRequest,
    CancelDeliveryRequest,
    CreateDeliveryRequest,
    ProviderErrorBody,
    ShipmentPromiseRequest,
    ShipmentPromiseResponse,
)


def build_default_client() -> WoltClient:
    """Client configured from settings (.env)."""
    return WoltClient(
        WoltConfig(
            api_token=settings.wolt_api_token,
            merchant_id=settings.wolt_merchant_id,
            venue_id=settings.wolt_venue_id,
            is_development=settings.wolt_is_development,
            timeout=settings.wolt_timeout_seconds,
        )
    )


default_client = build_default_client()

__all__ = [
    "WoltClient",
    "WoltConfig",
    "WoltResponse",
    "build_default_client",
    "default_client",
    "AvailableVenuesRequest",
    "CancelDeliveryRequest",
    "CreateDeliveryRequest",
    "ProviderErrorBody",
    "ShipmentPromiseRequest",
    "ShipmentPromiseResponse",
]
