from app.db.base import Base
from app.db.session import engine, SessionLocal
from app.db.tables import ALL_TABLE_NAMES

__all__ = ["engine", "SessionLocal", "Base", "ALL_TABLE_NAMES"]
