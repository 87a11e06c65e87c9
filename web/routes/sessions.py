"""
Session routes for the make2manage web service.

JSON endpoints for creating sessions, advancing time and issuing
player decisions. Every mutating call goes through ``SessionService.run``
so the database always mirrors the live simulation.
"""

from datetime import datetime
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from make2manage.engine.simulation import Simulation
from make2manage.models.decisions import Decision
from make2manage.models.events import GameEvent
from make2manage.models.game import GameState
from make2manage.models.settings import Difficulty, GameSettings
from web.database.session import get_db
from web.dependencies import SimulationDep, session_service
from web.services.session_service import SessionService

router = APIRouter(prefix="/sessions", tags=["sessions"])


# =============================================================================
# Request / Response Models
# =============================================================================


class CreateSessionRequest(BaseModel):
    settings: GameSettings = Field(default_factory=GameSettings)
    difficulty: Optional[Difficulty] = Field(default=None, description="Preset applied to settings")
    level: Optional[dict[str, Any]] = Field(default=None, description="Authored level document")
    config: Optional[dict[str, Any]] = Field(default=None, description="Engine config overrides")


class TickRequest(BaseModel):
    delta_ms: int = Field(ge=0, description="Real milliseconds since the last tick")


class SettingsRequest(BaseModel):
    changes: dict[str, Any]


class ReworkRequest(BaseModel):
    to_step: int = Field(ge=0, description="Route step to send the order back to")


class FailStationRequest(BaseModel):
    repair_minutes: Optional[float] = Field(default=None, gt=0, description="None for manual repair")


class CommandResponse(BaseModel):
    decision: Decision
    state: GameState


class SessionSummary(BaseModel):
    session_id: str
    status: str
    seed: Optional[int]
    elapsed_ms: int
    score: float
    orders_completed: int
    created_at: datetime
    updated_at: datetime


# =============================================================================
# Helpers
# =============================================================================


def _decide(
    db: Session,
    service: SessionService,
    session_id: str,
    action: Callable[[Simulation], Decision],
) -> CommandResponse:
    def run(simulation: Simulation) -> CommandResponse:
        decision = action(simulation)
        return CommandResponse(decision=decision, state=simulation.snapshot())

    return service.run(db, session_id, run)


# =============================================================================
# Sessions
# =============================================================================


@router.post("", status_code=201, response_model=GameState)
def create_session(
    request: CreateSessionRequest,
    db: Session = Depends(get_db),
    service: SessionService = Depends(session_service),
):
    """Create a session in setup."""
    simulation = service.create_session(
        db,
        settings=request.settings,
        difficulty=request.difficulty,
        level=request.level,
        config_overrides=request.config,
    )
    return simulation.snapshot()


@router.get("", response_model=list[SessionSummary])
def list_sessions(
    db: Session = Depends(get_db),
    service: SessionService = Depends(session_service),
):
    """List stored sessions, most recently updated first."""
    return [
        SessionSummary(
            session_id=record.session_id,
            status=record.status,
            seed=record.seed,
            elapsed_ms=record.elapsed_ms,
            score=record.score,
            orders_completed=record.orders_completed,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
        for record in service.list_sessions(db)
    ]


@router.get("/{session_id}", response_model=GameState)
def get_session(simulation: Simulation = Depends(SimulationDep())):
    return simulation.snapshot()


@router.delete("/{session_id}", status_code=204)
def delete_session(
    session_id: str,
    db: Session = Depends(get_db),
    service: SessionService = Depends(session_service),
):
    service.delete_session(db, session_id)
    return Response(status_code=204)


@router.post("/{session_id}/start", response_model=GameState)
def start_session(
    session_id: str,
    db: Session = Depends(get_db),
    service: SessionService = Depends(session_service),
):
    """Generate the order book and start the clock."""
    return service.run(db, session_id, lambda sim: sim.start())


@router.post("/{session_id}/tick", response_model=GameState)
def tick_session(
    session_id: str,
    request: TickRequest,
    db: Session = Depends(get_db),
    service: SessionService = Depends(session_service),
):
    """Advance the session by a real-time delta."""
    return service.run(db, session_id, lambda sim: sim.tick(request.delta_ms))


@router.post("/{session_id}/pause", response_model=CommandResponse)
def pause_session(
    session_id: str,
    db: Session = Depends(get_db),
    service: SessionService = Depends(session_service),
):
    return _decide(db, service, session_id, lambda sim: sim.pause())


@router.post("/{session_id}/resume", response_model=CommandResponse)
def resume_session(
    session_id: str,
    db: Session = Depends(get_db),
    service: SessionService = Depends(session_service),
):
    return _decide(db, service, session_id, lambda sim: sim.resume())


@router.post("/{session_id}/undo", response_model=CommandResponse)
def undo(
    session_id: str,
    db: Session = Depends(get_db),
    service: SessionService = Depends(session_service),
):
    """Reverse the most recent decision."""
    return _decide(db, service, session_id, lambda sim: sim.undo())


@router.post("/{session_id}/redo", response_model=CommandResponse)
def redo(
    session_id: str,
    db: Session = Depends(get_db),
    service: SessionService = Depends(session_service),
):
    """Re-apply the most recently undone decision."""
    return _decide(db, service, session_id, lambda sim: sim.redo())


@router.post("/{session_id}/settings", response_model=CommandResponse)
def change_settings(
    session_id: str,
    request: SettingsRequest,
    db: Session = Depends(get_db),
    service: SessionService = Depends(session_service),
):
    """Change settings that may be changed mid-session."""
    return _decide(db, service, session_id, lambda sim: sim.change_settings(**request.changes))


# =============================================================================
# Orders
# =============================================================================


@router.post("/{session_id}/orders/{order_id}/release", response_model=CommandResponse)
def release_order(
    session_id: str,
    order_id: str,
    db: Session = Depends(get_db),
    service: SessionService = Depends(session_service),
):
    return _decide(db, service, session_id, lambda sim: sim.release_order(order_id))


@router.post("/{session_id}/orders/{order_id}/recall", response_model=CommandResponse)
def recall_order(
    session_id: str,
    order_id: str,
    db: Session = Depends(get_db),
    service: SessionService = Depends(session_service),
):
    return _decide(db, service, session_id, lambda sim: sim.recall_order(order_id))


@router.post("/{session_id}/orders/{order_id}/hold", response_model=CommandResponse)
def hold_order(
    session_id: str,
    order_id: str,
    db: Session = Depends(get_db),
    service: SessionService = Depends(session_service),
):
    return _decide(db, service, session_id, lambda sim: sim.hold_order(order_id))


@router.post("/{session_id}/orders/{order_id}/resume", response_model=CommandResponse)
def resume_order(
    session_id: str,
    order_id: str,
    db: Session = Depends(get_db),
    service: SessionService = Depends(session_service),
):
    return _decide(db, service, session_id, lambda sim: sim.resume_order(order_id))


@router.post("/{session_id}/orders/{order_id}/rework", response_model=GameState)
def rework_order(
    session_id: str,
    order_id: str,
    request: ReworkRequest,
    db: Session = Depends(get_db),
    service: SessionService = Depends(session_service),
):
    """Send an order back to an earlier step of its route."""
    return service.run(db, session_id, lambda sim: sim.rework_order(order_id, request.to_step))


# =============================================================================
# Stations
# =============================================================================


@router.post("/{session_id}/stations/{department_id}/fail", response_model=GameState)
def fail_station(
    session_id: str,
    department_id: int,
    request: FailStationRequest,
    db: Session = Depends(get_db),
    service: SessionService = Depends(session_service),
):
    """Take a station down for maintenance."""
    return service.run(
        db, session_id, lambda sim: sim.fail_station(department_id, request.repair_minutes)
    )


@router.post("/{session_id}/stations/{department_id}/repair", response_model=GameState)
def repair_station(
    session_id: str,
    department_id: int,
    db: Session = Depends(get_db),
    service: SessionService = Depends(session_service),
):
    return service.run(db, session_id, lambda sim: sim.repair_station(department_id))


# =============================================================================
# History
# =============================================================================


@router.get("/{session_id}/events", response_model=list[GameEvent])
def list_events(
    session_id: str,
    since: int = Query(default=0, ge=0, description="Return events after this sequence"),
    simulation: Simulation = Depends(SimulationDep()),
):
    """Events published after ``since``, in sequence order."""
    return simulation.events(since)


@router.get("/{session_id}/decisions", response_model=list[Decision])
def list_decisions(
    session_id: str,
    db: Session = Depends(get_db),
    service: SessionService = Depends(session_service),
):
    """Audited decision history of a session."""
    return service.decision_history(db, session_id)
