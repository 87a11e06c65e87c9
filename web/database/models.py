"""
SQLAlchemy models for the make2manage web service.

Sessions are stored with their full ``GameState`` serialized as JSON,
plus denormalized fields for listing. Every journal decision is copied
into an audit table as it is made.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class SessionRecord(Base):
    """Persistent simulation session."""

    __tablename__ = "game_sessions"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    session_id: str = Column(String(64), unique=True, nullable=False, index=True)

    # Session state (serialized Pydantic models)
    state_json: str = Column(Text, nullable=False)  # JSON serialized GameState
    config_json: Optional[str] = Column(Text, nullable=True)  # JSON serialized EngineConfig

    # Denormalized metadata for quick queries
    status: str = Column(String(16), nullable=False, default="setup")
    seed: Optional[int] = Column(Integer, nullable=True)
    elapsed_ms: int = Column(Integer, default=0)
    score: float = Column(Float, default=0.0)
    orders_completed: int = Column(Integer, default=0)

    created_at: datetime = Column(DateTime, default=_utcnow)
    updated_at: datetime = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    def __repr__(self) -> str:
        return (
            f"<SessionRecord(id={self.id}, session_id={self.session_id}, "
            f"status={self.status}, elapsed_ms={self.elapsed_ms})>"
        )


class DecisionRecord(Base):
    """Audit copy of one journal decision."""

    __tablename__ = "decision_records"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    game_session_id: int = Column(
        Integer, ForeignKey("game_sessions.id"), nullable=False, index=True
    )

    decision_id: str = Column(String(16), nullable=False)
    type: str = Column(String(32), nullable=False)
    timestamp_ms: int = Column(Integer, nullable=False)
    description: str = Column(Text, default="")
    decision_json: str = Column(Text, nullable=False)  # JSON serialized Decision

    recorded_at: datetime = Column(DateTime, default=_utcnow)

    def __repr__(self) -> str:
        return (
            f"<DecisionRecord(id={self.id}, session={self.game_session_id}, "
            f"decision={self.decision_id}, type={self.type})>"
        )
