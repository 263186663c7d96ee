"""Log of outbound Wolt Drive calls (request, response, duration) for the API log view."""
from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from app.db.base import Base


class ApiCallLog(Base):
    __tablename__ = "api_call_logs"

    id = Column(Integer, primary_key=True, index=True)
    entry_id = Column(String(64), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    log_type = Column(String(32), nullable=False, index=True)  # shipment-promise | create-delivery | ...
    method = Column(String(8), nullable=False)
    url = Column(String(512), nullable=False)
    request_json = Column(Text, nullable=True)
    response_status = Column(Integer, nullable=False)
    response_json = Column(Text, nullable=True)
    duration_ms = Column(Integer, nullable=True)
