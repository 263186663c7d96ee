"""
FastAPI app entrypoint.

Storefront delivery backend: venue-hours scheduling and Wolt Drive quote/delivery negotiation.
"""
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Load .env from backend/ before any app code
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

from app.api.routes import delivery
from app.config import settings
from app.services.api_log_service import build_log_sink
from app.services.wolt import build_default_client

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.wolt_client = build_default_client()
    app.state.api_log_sink = build_log_sink(settings.api_log_backend)
    missing = app.state.wolt_client.config.missing("api_token", "merchant_id", "venue_id")
    if missing:
        logger.warning("Wolt Drive not fully configured (missing %s); provider calls will fail", ", ".join(missing))
    logger.info(
        "Backend ready: venue hours %s-%s %s, prep %s min, api log backend=%s",
        settings.venue_open_time,
        settings.venue_close_time,
        settings.venue_timezone,
        settings.preparation_time_minutes,
        settings.api_log_backend,
    )
    yield


app = FastAPI(title="Storefront Delivery", version="0.1.0", lifespan=lifespan)

# CORS: dev origins + optional CORS_ORIGINS env (comma-separated) for the storefront frontend
_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
_cors_extra = os.getenv("CORS_ORIGINS", "")
if _cors_extra:
    _cors_origins.extend(o.strip() for o in _cors_extra.split(",") if o.strip())
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(delivery.router, prefix="/delivery", tags=["delivery"])


@app.get("/", include_in_schema=False)
def root():
    """Root: point to API docs and health."""
    return {"message": "Storefront Delivery API", "docs": "/docs", "health": "/health"}


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}
