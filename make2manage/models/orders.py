"""
Order models for the make-to-order shop floor.

An order is a unit of customer work that travels through a route of
department stations. Status values form a closed set; anything else is
rejected when a model is validated.

Times are simulated milliseconds since session start.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

MS_PER_MINUTE = 60_000

# Due-time fallback when an authored order carries no due window
DEFAULT_DUE_WINDOW_MINUTES = 30


class OrderPriority(str, Enum):
    """Customer priority of an order."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Numeric rank, higher is more urgent."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    OrderPriority.LOW: 1,
    OrderPriority.NORMAL: 2,
    OrderPriority.HIGH: 3,
    OrderPriority.URGENT: 4,
}


class OrderStatus(str, Enum):
    """Lifecycle status of an order."""

    QUEUED = "queued"
    PROCESSING = "processing"
    ON_HOLD = "on_hold"
    DONE = "done"
    ERROR = "error"
    REJECTED = "rejected"
    COMPLETED_ON_TIME = "completed_on_time"
    COMPLETED_LATE = "completed_late"

    @property
    def is_terminal(self) -> bool:
        """Terminal orders are never modified again."""
        return self in TERMINAL_STATUSES

    @property
    def is_completed(self) -> bool:
        return self in (OrderStatus.COMPLETED_ON_TIME, OrderStatus.COMPLETED_LATE)


TERMINAL_STATUSES = frozenset(
    {
        OrderStatus.DONE,
        OrderStatus.ERROR,
        OrderStatus.REJECTED,
        OrderStatus.COMPLETED_ON_TIME,
        OrderStatus.COMPLETED_LATE,
    }
)


class HalfOrderReason(str, Enum):
    """Why an order only needs a fraction of standard processing time."""

    DEFECT_REPAIR = "defect_repair"
    PARTIAL_WORK = "partial_work"
    REWORK = "rework"
    QUALITY_ISSUE = "quality_issue"


HALF_ORDER_MULTIPLIER = 0.5


class SLAStatus(str, Enum):
    """Service-level status of an active order against its due time."""

    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    OVERDUE = "overdue"


class StepTimestamp(BaseModel):
    """Timing record of one visit to a station."""

    department_id: int = Field(description="Station visited")
    step_index: int = Field(ge=0, description="Route index of this visit")
    enqueued_at_ms: int = Field(ge=0, description="When the order joined the queue")
    start_ms: Optional[int] = Field(default=None, description="When processing started")
    end_ms: Optional[int] = Field(default=None, description="When processing finished")

    @property
    def cycle_ms(self) -> Optional[int]:
        """Queue plus processing time for this visit."""
        if self.end_ms is None:
            return None
        return self.end_ms - self.enqueued_at_ms


class Order(BaseModel):
    """A customer order moving through the shop.

    The engine bookkeeping fields (``remaining_ms``, ``step_duration_ms``,
    ``enqueue_seq``, ``held_from``, ``blocked``) are owned by the station
    and routing engines and should not be set by authors.
    """

    id: str = Field(min_length=1, description="Unique order identifier")
    customer_id: str = Field(default="CUST-LEVEL", description="Ordering customer")
    customer_name: str = Field(default="Level Customer", description="Customer display name")
    priority: OrderPriority = Field(default=OrderPriority.NORMAL)
    value: float = Field(default=1000.0, ge=0, description="Order value in dollars")
    due_minutes: Optional[float] = Field(
        default=None, ge=0, description="Due time in minutes from session start"
    )
    route: list[int] = Field(min_length=1, description="Station ids in visiting order")
    current_step_index: int = Field(default=0, ge=0)
    status: OrderStatus = Field(default=OrderStatus.QUEUED)
    timestamps: list[StepTimestamp] = Field(default_factory=list)
    rework_count: int = Field(default=0, ge=0)
    created_at_ms: int = Field(default=0, ge=0, description="Release time into the shop")
    completed_at_ms: Optional[int] = Field(default=None)
    processing_time_multiplier: float = Field(default=1.0, gt=0, le=1.0)
    half_order_reason: Optional[HalfOrderReason] = Field(default=None)
    station_durations: dict[int, int] = Field(
        default_factory=dict,
        description="Authored base duration per station id, in ms",
    )
    rush_order: bool = Field(default=False)
    special_instructions: Optional[str] = Field(default=None)

    # Engine bookkeeping
    remaining_ms: Optional[int] = Field(default=None, ge=0)
    step_duration_ms: Optional[int] = Field(default=None, ge=0)
    enqueue_seq: int = Field(default=0, ge=0, description="Global enqueue counter for FIFO ties")
    held_from: Optional[OrderStatus] = Field(default=None)
    blocked: bool = Field(default=False)

    @field_validator("station_durations", mode="before")
    @classmethod
    def coerce_station_keys(cls, v):
        """JSON object keys arrive as strings."""
        if isinstance(v, dict):
            return {int(k): val for k, val in v.items()}
        return v

    @model_validator(mode="after")
    def check_step_on_route(self):
        """The current step must point into the route."""
        if self.current_step_index >= len(self.route):
            raise ValueError(
                f"current_step_index {self.current_step_index} is past the end of a "
                f"{len(self.route)}-step route"
            )
        return self

    @property
    def is_half_order(self) -> bool:
        return self.half_order_reason is not None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_last_step(self) -> bool:
        return self.current_step_index == len(self.route) - 1

    @property
    def current_department_id(self) -> int:
        return self.route[self.current_step_index]

    @property
    def remaining_route(self) -> list[int]:
        """Stations still to visit, including the current one."""
        return self.route[self.current_step_index:]

    @property
    def due_at_ms(self) -> int:
        """Due time on the session timeline."""
        if self.due_minutes is None:
            return self.created_at_ms + DEFAULT_DUE_WINDOW_MINUTES * MS_PER_MINUTE
        return round(self.due_minutes * MS_PER_MINUTE)

    @property
    def lead_time_ms(self) -> Optional[int]:
        if self.completed_at_ms is None:
            return None
        return self.completed_at_ms - self.created_at_ms

    def base_duration_ms(self, department_id: int, standard_ms: int) -> int:
        """Authored duration for a station, or the station standard."""
        return self.station_durations.get(department_id, standard_ms)

    def current_visit(self) -> Optional[StepTimestamp]:
        """Timing record of the visit in progress, if any."""
        for stamp in reversed(self.timestamps):
            if stamp.step_index == self.current_step_index and stamp.end_ms is None:
                return stamp
        return None


class ScheduledOrder(BaseModel):
    """An order waiting for its release time."""

    order: Order
    release_time_ms: int = Field(ge=0, description="Release time on the session timeline")
