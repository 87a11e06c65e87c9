"""Database models and session management for the make2manage web service."""

from web.database.models import Base, DecisionRecord, SessionRecord
from web.database.session import get_db, init_db, reset_engine

__all__ = [
    "Base",
    "DecisionRecord",
    "SessionRecord",
    "get_db",
    "init_db",
    "reset_engine",
]
