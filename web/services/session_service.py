"""
Session service for the make2manage web service.

Keeps one live ``Simulation`` per session in memory and mirrors its state
into the database after every call, so a restarted server picks sessions
up where they were left.
"""

import logging
import threading
from typing import Any, Callable, Optional, TypeVar

from sqlalchemy.orm import Session

from make2manage.config.schema import EngineConfig, apply_difficulty, get_default_config
from make2manage.engine.simulation import Simulation
from make2manage.io.level_io import load_level_from_dict
from make2manage.models.decisions import Decision
from make2manage.models.game import GameState
from make2manage.models.settings import Difficulty, GameSettings
from web.database.models import DecisionRecord, SessionRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionNotFound(Exception):
    """No session with the given id exists."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


class SessionService:
    """Creates, caches and persists simulations."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or get_default_config()
        self._simulations: dict[str, Simulation] = {}
        self._lock = threading.Lock()

    def create_session(
        self,
        db: Session,
        settings: Optional[GameSettings] = None,
        difficulty: Optional[Difficulty] = None,
        level: Optional[dict[str, Any]] = None,
        config_overrides: Optional[dict[str, Any]] = None,
    ) -> Simulation:
        """Create a session in setup and persist it.

        Args:
            db: Database session
            settings: Session settings (defaults if None)
            difficulty: Preset applied on top of the settings
            level: Authored level document; switches to predetermined orders
            config_overrides: Partial engine config merged onto the defaults

        Raises:
            LevelFormatError: If the level document is invalid
        """
        settings = settings or GameSettings()
        if difficulty is not None:
            settings = apply_difficulty(settings, difficulty)
        if level is not None:
            parsed = load_level_from_dict(level, settings.session_duration)
            settings = settings.model_copy(
                update={
                    "use_predetermined_orders": True,
                    "predetermined_schedule": parsed.scheduled_orders,
                }
            )
        config = self.config.merge(config_overrides) if config_overrides else self.config

        simulation = Simulation(settings, config)
        record = SessionRecord(
            session_id=simulation.session_id,
            state_json=simulation.snapshot().model_dump_json(),
            config_json=config.model_dump_json(),
        )
        db.add(record)
        db.commit()

        with self._lock:
            self._simulations[simulation.session_id] = simulation
        logger.info("Created session %s", simulation.session_id)
        return simulation

    def get_simulation(self, db: Session, session_id: str) -> Simulation:
        """Cached simulation, or one restored from the database.

        Raises:
            SessionNotFound: If the session does not exist
        """
        with self._lock:
            simulation = self._simulations.get(session_id)
            if simulation is not None:
                return simulation

            record = self._record(db, session_id)
            config = (
                EngineConfig.model_validate_json(record.config_json)
                if record.config_json
                else self.config
            )
            state = GameState.model_validate_json(record.state_json)
            simulation = Simulation.from_state(state, config)
            self._simulations[session_id] = simulation
            return simulation

    def run(self, db: Session, session_id: str, action: Callable[[Simulation], T]) -> T:
        """Apply ``action`` to a session and persist the result.

        The state is persisted even when the action fails, since failures
        are recorded on the event stream.
        """
        simulation = self.get_simulation(db, session_id)
        try:
            return action(simulation)
        finally:
            self.persist(db, simulation)

    def persist(self, db: Session, simulation: Simulation) -> None:
        """Write the session state and any new decisions to the database."""
        record = self._record(db, simulation.session_id)
        state = simulation.snapshot()

        record.state_json = state.model_dump_json()
        record.status = state.session.status.value
        record.seed = state.session.seed
        record.elapsed_ms = state.now_ms
        record.score = state.score
        record.orders_completed = len(state.completed_orders)

        recorded = (
            db.query(DecisionRecord)
            .filter(DecisionRecord.game_session_id == record.id)
            .count()
        )
        for decision in state.decisions[recorded:]:
            db.add(
                DecisionRecord(
                    game_session_id=record.id,
                    decision_id=decision.id,
                    type=decision.type.value,
                    timestamp_ms=decision.timestamp_ms,
                    description=decision.description,
                    decision_json=decision.model_dump_json(),
                )
            )
        db.commit()

    def list_sessions(self, db: Session) -> list[SessionRecord]:
        return db.query(SessionRecord).order_by(SessionRecord.updated_at.desc()).all()

    def decision_history(self, db: Session, session_id: str) -> list[Decision]:
        """Audited decisions of a session, in journal order."""
        record = self._record(db, session_id)
        rows = (
            db.query(DecisionRecord)
            .filter(DecisionRecord.game_session_id == record.id)
            .order_by(DecisionRecord.id)
            .all()
        )
        return [Decision.model_validate_json(row.decision_json) for row in rows]

    def delete_session(self, db: Session, session_id: str) -> None:
        """Delete a session and its decision history.

        Raises:
            SessionNotFound: If the session does not exist
        """
        record = self._record(db, session_id)
        db.query(DecisionRecord).filter(DecisionRecord.game_session_id == record.id).delete()
        db.delete(record)
        db.commit()
        with self._lock:
            self._simulations.pop(session_id, None)

    @staticmethod
    def _record(db: Session, session_id: str) -> SessionRecord:
        record = db.query(SessionRecord).filter(SessionRecord.session_id == session_id).first()
        if record is None:
            raise SessionNotFound(session_id)
        return record


# Global service instance (singleton pattern)
_session_service: Optional[SessionService] = None


def get_session_service() -> SessionService:
    """Get or create the global SessionService instance."""
    global _session_service
    if _session_service is None:
        _session_service = SessionService()
    return _session_service


def reset_session_service() -> None:
    """Drop the global instance and its cached simulations."""
    global _session_service
    _session_service = None
