"""Wolt Drive API config. Credentials from env (WOLT_API_TOKEN, WOLT_MERCHANT_ID, WOLT_VENUE_ID) or WoltConfig args."""
import os
from pathlib import Path

from dotenv import load_dotenv

_ENV_PATH = Path(__file__).resolve().parent.parent.parent.parent / ".env"
load_dotenv(_ENV_PATH)

PRODUCTION_BASE_URL = "https://daas-public-api.wolt.com"
DEVELOPMENT_BASE_URL = "https://daas-public-api.development.dev.woltapi.com"
DEFAULT_TIMEOUT_SECONDS = 30.0


def _env(key: str, default: str = "") -> str:
    return (os.getenv(key) or default).strip()


def _env_bool(key: str, default: bool) -> bool:
    raw = _env(key)
    if not raw:
        return default
    return raw.lower() in ("1", "true", "yes")


def base_url_for(is_development: bool) -> str:
    return DEVELOPMENT_BASE_URL if is_development else PRODUCTION_BASE_URL


class WoltConfig:
    """API credentials, merchant/venue ids and base URL for Wolt Drive."""

    __slots__ = ("api_token", "merchant_id", "venue_id", "is_development", "base_url", "timeout")

    def __init__(
        self,
        *,
        api_token: str | None = None,
        merchant_id: str | None = None,
        venue_id: str | None = None,
        is_development: bool | None = None,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.api_token = (api_token or _env("WOLT_API_TOKEN")).strip()
        self.merchant_id = (merchant_id or _env("WOLT_MERCHANT_ID")).strip()
        self.venue_id = (venue_id or _env("WOLT_VENUE_ID")).strip()
        self.is_development = (
            is_development if is_development is not None else _env_bool("WOLT_IS_DEVELOPMENT", True)
        )
        self.base_url = (base_url or base_url_for(self.is_development)).rstrip("/")
        self.timeout = timeout

    def missing(self, *fields: str) -> list[str]:
        """Names of the given fields (api_token, merchant_id, venue_id) that are empty."""
        return [f for f in fields if not getattr(self, f)]

    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
        }
