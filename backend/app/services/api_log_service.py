"""
Append and list outbound API call logs (request, response, duration) for the log view.

The negotiator receives a sink explicitly; nothing here is process-global except the
in-memory sink the app creates once at startup. Long lists are truncated for display.
"""
import json
import logging
import threading
import time
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Protocol

from sqlalchemy.orm import Session

from app.core.constants import API_LOG_LIST_LIMIT, API_LOG_MAX_ENTRIES
from app.models.api_call_log import ApiCallLog

logger = logging.getLogger(__name__)

MAX_LIST_LEN = 50


class ApiLogSink(Protocol):
    """Where API call log entries go. append() may raise; callers must not let that abort a request."""

    def append(self, entry: dict[str, Any]) -> None:
        ...

    def list_recent(self, limit: int = API_LOG_LIST_LIMIT) -> list[dict[str, Any]]:
        ...

    def clear(self) -> int:
        ...


def _sanitize(value: Any) -> Any:
    """Truncate long lists for storage/display."""
    if isinstance(value, list):
        if len(value) <= MAX_LIST_LEN:
            return [_sanitize(v) for v in value]
        return [_sanitize(v) for v in value[:MAX_LIST_LEN]] + [f"... ({len(value)} total)"]
    if isinstance(value, dict):
        return {k: _sanitize(v) for k, v in value.items()}
    return value


def new_entry_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def make_log_entry(
    log_type: str,
    method: str,
    url: str,
    request_body: Any,
    response_status: int,
    response_body: Any,
    duration_ms: int,
) -> dict[str, Any]:
    """One log record: {id, timestamp, type, request: {method, url, body}, response: {status, body}, duration_ms}."""
    return {
        "id": new_entry_id(),
        "timestamp": _format_timestamp(datetime.now(timezone.utc)),
        "type": log_type,
        "request": {"method": method, "url": url, "body": _sanitize(request_body)},
        "response": {"status": response_status, "body": _sanitize(response_body)},
        "duration_ms": duration_ms,
    }


def record_api_call(sink: "ApiLogSink | None", entry: dict[str, Any]) -> None:
    """Append entry to sink. A failing sink is logged and ignored; it never aborts the caller."""
    if sink is None:
        return
    try:
        sink.append(entry)
    except Exception:
        logger.exception("Failed to log API call (type=%s)", entry.get("type"))


class InMemoryApiLogSink:
    """Newest-first log capped at max_entries. Thread-safe."""

    def __init__(self, max_entries: int = API_LOG_MAX_ENTRIES) -> None:
        self._entries: deque[dict[str, Any]] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def append(self, entry: dict[str, Any]) -> None:
        with self._lock:
            self._entries.appendleft(entry)

    def list_recent(self, limit: int = API_LOG_LIST_LIMIT) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._entries)[:limit]

    def clear(self) -> int:
        with self._lock:
            n = len(self._entries)
            self._entries.clear()
        return n


def _dumps(value: Any) -> str:
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return json.dumps({"raw": str(value)[:2000]})


def _parse_timestamp(value: Any) -> datetime:
    """Entry timestamp as an aware UTC datetime; now if missing or malformed."""
    if isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            dt = None
        if dt is not None:
            return dt.astimezone(timezone.utc) if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    return datetime.now(timezone.utc)


def _format_timestamp(value: datetime | None) -> str | None:
    """Same shape as make_log_entry. SQLite returns naive values; they are UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _loads(raw: str | None) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        return {"_raw": raw[:500]}


class DbApiLogSink:
    """Persists entries to api_call_logs. Opens its own session per call so it is safe across requests."""

    def __init__(self, session_factory: Callable[[], Session] | None = None) -> None:
        if session_factory is None:
            from app.db.session import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory

    def append(self, entry: dict[str, Any]) -> None:
        request = entry.get("request") or {}
        response = entry.get("response") or {}
        row = ApiCallLog(
            entry_id=entry["id"],
            created_at=_parse_timestamp(entry.get("timestamp")),
            log_type=entry["type"],
            method=request.get("method") or "POST",
            url=request.get("url") or "",
            request_json=_dumps(request.get("body")),
            response_status=int(response.get("status") or 0),
            response_json=_dumps(response.get("body")),
            duration_ms=entry.get("duration_ms"),
        )
        db = self._session_factory()
        try:
            db.add(row)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def list_recent(self, limit: int = API_LOG_LIST_LIMIT) -> list[dict[str, Any]]:
        """Most recent entries, newest first, in the same shape as make_log_entry."""
        db = self._session_factory()
        try:
            rows = (
                db.query(ApiCallLog)
                .order_by(ApiCallLog.created_at.desc(), ApiCallLog.id.desc())
                .limit(limit)
                .all()
            )
            return [
                {
                    "id": r.entry_id,
                    "timestamp": _format_timestamp(r.created_at),
                    "type": r.log_type,
                    "request": {"method": r.method, "url": r.url, "body": _loads(r.request_json)},
                    "response": {"status": r.response_status, "body": _loads(r.response_json)},
                    "duration_ms": r.duration_ms,
                }
                for r in rows
            ]
        finally:
            db.close()

    def clear(self) -> int:
        db = self._session_factory()
        try:
            n = db.query(ApiCallLog).delete()
            db.commit()
            return n
        finally:
            db.close()


def build_log_sink(backend: str) -> ApiLogSink:
    """Sink for API_LOG_BACKEND ("memory" or "db")."""
    if backend == "db":
        return DbApiLogSink()
    return InMemoryApiLogSink()
