"""
Application settings (Pydantic Settings).
"""
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env next to backend/ (parent of app/)
_env_path = Path(__file__).resolve().parent.parent / ".env"


class Settings(BaseSettings):
    database_url: str = "sqlite:///./storefront.db"
    log_level: str = "INFO"
    # Wolt Drive: WOLT_API_TOKEN, WOLT_MERCHANT_ID, WOLT_VENUE_ID in .env
    wolt_api_token: str = ""
    wolt_merchant_id: str = ""
    wolt_venue_id: str = ""
    wolt_is_development: bool = True
    wolt_timeout_seconds: float = 30.0
    # Venue opening hours (venue-local wall clock) and default preparation time
    venue_timezone: str = "Europe/Athens"
    venue_open_time: str = "08:00"
    venue_close_time: str = "18:00"
    preparation_time_minutes: int = 60
    # Where outbound API calls are logged: "memory" (last 100) or "db" (api_call_logs table)
    api_log_backend: str = "memory"

    class Config:
        env_file = _env_path
        extra = "ignore"

    @field_validator("wolt_api_token", "wolt_merchant_id", "wolt_venue_id", mode="after")
    @classmethod
    def strip_wolt(cls, v: str) -> str:
        return (v or "").strip()

    @field_validator("api_log_backend", mode="after")
    @classmethod
    def normalize_log_backend(cls, v: str) -> str:
        v = (v or "").strip().lower()
        return v if v in ("memory", "db") else "memory"


settings = Settings()
