"""
FastAPI dependency injection helpers for the make2manage web service.

Provides common dependencies for routes including:
- Database sessions
- The session service
- The live simulation behind a session id
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from make2manage.engine.simulation import Simulation
from web.database.session import get_db
from web.services.session_service import SessionService, get_session_service


def session_service() -> SessionService:
    """The process-wide session service."""
    return get_session_service()


class SimulationDep:
    """Dependency class for getting a simulation from the URL path.

    Usage in routes:
        @router.get("/sessions/{session_id}")
        def get_state(
            session_id: str,
            simulation: Simulation = Depends(SimulationDep()),
        ):
            ...

    Raises SessionNotFound (mapped to 404) if the session does not exist.
    """

    def __call__(
        self,
        session_id: str,
        db: Session = Depends(get_db),
        service: SessionService = Depends(session_service),
    ) -> Simulation:
        return service.get_simulation(db, session_id)
