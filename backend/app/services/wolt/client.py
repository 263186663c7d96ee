"""Wolt Drive API client: lowest level, sends request only. No retry, no validation of bodies."""
from typing import Any

import httpx

from app.core.errors import ProviderNotConfigured, TransportFailure
from app.services.wolt.config import WoltConfig
from app.services.wolt.types import (
    AvailableVenuesRequest,
    CancelDeliveryRequest,
    CreateDeliveryRequest,
    ShipmentPromiseRequest,
)


class WoltResponse:
    """Status + raw text + parsed JSON (None if the body is not JSON) of one provider call."""

    __slots__ = ("status_code", "text", "data")

    def __init__(self, status_code: int, text: str, data: Any = None) -> None:
        self.status_code = status_code
        self.text = text
        self.data = data

    @classmethod
    def from_httpx(cls, r: httpx.Response) -> "WoltResponse":
        text = r.text or ""
        data: Any = None
        if r.content:
            try:
                data = r.json()
            except ValueError:
                data = None
        else:
            data = {}
        return cls(r.status_code, text, data)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def body_for_log(self) -> Any:
        return self.data if self.data is not None else self.text[:2000]


class WoltClient:
    """Wolt Drive venues, shipment promises and deliveries."""

    def __init__(
        self,
        config: WoltConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or WoltConfig()
        self._transport = transport

    @property
    def config(self) -> WoltConfig:
        return self._config

    def _require(self, *fields: str) -> None:
        missing = self._config.missing(*fields)
        if missing:
            raise ProviderNotConfigured(missing)

    def _venue(self, venue_id: str | None) -> str:
        vid = (venue_id or "").strip() or self._config.venue_id
        if not vid:
            raise ProviderNotConfigured(["venue_id"])
        return vid

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> WoltResponse:
        url = f"{self._config.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._config.timeout, transport=self._transport) as c:
                r = await c.request(method, url, json=json_body, params=params, headers=self._config.headers())
        except httpx.HTTPError as e:
            raise TransportFailure(f"Wolt API request failed: {e!s}") from e
        return WoltResponse.from_httpx(r)

    async def available_venues(self, body: AvailableVenuesRequest) -> WoltResponse:
        """Venues that can serve the dropoff address (and scheduled time, if given)."""
        self._require("api_token", "merchant_id")
        return await self._request("POST", f"/merchants/{self._config.merchant_id}/available-venues", json_body=body)

    async def shipment_promise(self, body: ShipmentPromiseRequest, *, venue_id: str | None = None) -> WoltResponse:
        """Price/time quote for one venue. venue_id defaults to WOLT_VENUE_ID."""
        self._require("api_token")
        vid = self._venue(venue_id)
        return await self._request("POST", f"/v1/venues/{vid}/shipment-promises", json_body=body)

    async def create_delivery(self, body: CreateDeliveryRequest, *, venue_id: str | None = None) -> WoltResponse:
        self._require("api_token")
        vid = self._venue(venue_id)
        return await self._request("POST", f"/v1/venues/{vid}/deliveries", json_body=body)

    async def list_deliveries(
        self,
        limit: int = 20,
        offset: int = 0,
        *,
        venue_id: str | None = None,
    ) -> WoltResponse:
        self._require("api_token")
        vid = self._venue(venue_id)
        return await self._request(
            "GET", f"/v1/venues/{vid}/deliveries", params={"limit": limit, "offset": offset}
        )

    async def cancel_delivery(self, reference_id: str, body: CancelDeliveryRequest) -> WoltResponse:
        """Cancel by Wolt order reference id."""
        self._require("api_token")
        return await self._request("PATCH", f"/order/{reference_id}/status/cancel", json_body=body)
