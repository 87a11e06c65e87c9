"""
Game event records published to dashboards.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from make2manage.models.performance import GamePerformance


class EventType(str, Enum):
    """Closed set of event kinds."""

    GAME_STARTED = "game_started"
    GAME_PAUSED = "game_paused"
    GAME_RESUMED = "game_resumed"
    GAME_COMPLETED = "game_completed"
    ORDER_GENERATED = "order_generated"
    ORDER_RELEASED = "order_released"
    ORDER_RECALLED = "order_recalled"
    ORDER_DISPATCHED = "order_dispatched"
    ORDER_ADVANCED = "order_advanced"
    ORDER_COMPLETED = "order_completed"
    ORDER_LATE = "order_late"
    ORDER_BLOCKED = "order_blocked"
    ORDER_REJECTED = "order_rejected"
    ORDER_ERROR = "order_error"
    ORDER_HELD = "order_held"
    ORDER_RESUMED = "order_resumed"
    ORDER_REWORKED = "order_reworked"
    EQUIPMENT_FAILURE = "equipment_failure"
    EQUIPMENT_REPAIRED = "equipment_repaired"
    EFFICIENCY_BOOST = "efficiency_boost"
    RUSH_ORDER = "rush_order"
    DELIVERY_DELAY = "delivery_delay"
    SETTINGS_CHANGED = "settings_changed"
    DECISION_UNDONE = "decision_undone"
    DECISION_REDONE = "decision_redone"
    COMMAND_FAILED = "command_failed"


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class GameEvent(BaseModel):
    """One entry of the event stream."""

    id: str = Field(description="Sequential id, EVT-000001 and up")
    sequence: int = Field(ge=1, description="Position in the session's event stream")
    type: EventType
    timestamp_ms: int = Field(ge=0, description="Session time of the event")
    message: str
    severity: Severity = Field(default=Severity.INFO)
    department_id: Optional[int] = Field(default=None)
    order_id: Optional[str] = Field(default=None)
    decision_id: Optional[str] = Field(default=None)
    kpi_snapshot: Optional[GamePerformance] = Field(default=None)
