"""
Centralized error handling for scheduling and provider failures.
Exception types plus one rules table so routes stay thin and new error types are easy to add.
"""
from __future__ import annotations

from typing import Callable

from fastapi import HTTPException

# ---------------------------------------------------------------------------
# Constants: status codes and user-facing messages
# ---------------------------------------------------------------------------

STATUS_BAD_REQUEST = 400
STATUS_INTERNAL_ERROR = 500
STATUS_BAD_GATEWAY = 502  # provider unreachable or returned garbage

MSG_MISSING_API_CONFIG = "Missing API configuration"
MSG_RETRIED_HINT = "A corrected delivery time was already tried and the provider still refused it."


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class DeliveryError(Exception):
    """Base for every error raised by the scheduling / negotiation core."""


class InvalidConfiguration(DeliveryError):
    """Malformed venue hours, timezone, preparation time, manual slot or request body. Not recoverable by retrying."""


class ProviderNotConfigured(DeliveryError):
    """Wolt credentials (token, merchant id or venue id) are missing."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(MSG_MISSING_API_CONFIG)


class ProviderRejected(DeliveryError):
    """
    Provider answered with a non-2xx status.
    after_retry is True when the single corrected-time retry was sent and also failed;
    status_code and text then belong to the retry, not the first attempt.
    """

    def __init__(
        self,
        status_code: int,
        text: str,
        *,
        after_retry: bool = False,
        retryable: bool = False,
    ):
        self.status_code = status_code
        self.text = text
        self.after_retry = after_retry
        self.retryable = retryable
        prefix = "Wolt API error after retry" if after_retry else "Wolt API error"
        super().__init__(f"{prefix}: {text}")

    def to_response(self) -> dict:
        out = {"error": str(self)}
        if self.after_retry:
            out["hint"] = MSG_RETRIED_HINT
        return out


class TransportFailure(DeliveryError):
    """Network or decoding failure talking to the provider. Never retried here."""


# ---------------------------------------------------------------------------
# Error rules: (exception type, status_code or resolver). First match wins.
# Add new rules here instead of scattering checks in routes.
# ---------------------------------------------------------------------------

ERROR_RULES: list[tuple[type[DeliveryError], Callable[[DeliveryError], int]]] = [
    (ProviderRejected, lambda e: e.status_code),  # type: ignore[attr-defined]
    (ProviderNotConfigured, lambda e: STATUS_INTERNAL_ERROR),
    (InvalidConfiguration, lambda e: STATUS_BAD_REQUEST),
    (TransportFailure, lambda e: STATUS_BAD_GATEWAY),
]


def _detail(exc: DeliveryError) -> dict:
    if isinstance(exc, ProviderRejected):
        return exc.to_response()
    if isinstance(exc, ProviderNotConfigured):
        return {"error": str(exc), "details": {"missing": exc.missing}}
    return {"error": str(exc)}


def delivery_error_to_http(exc: DeliveryError) -> HTTPException:
    """
    Map a core exception to an HTTPException.
    Uses ERROR_RULES for known types; anything else becomes 500 with the exception message.
    """
    for exc_type, status_for in ERROR_RULES:
        if isinstance(exc, exc_type):
            return HTTPException(status_code=status_for(exc), detail=_detail(exc))
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail={"error": str(exc)})
