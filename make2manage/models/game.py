"""
Root game state models.

``GameState`` is the single aggregate of a session. The ``Simulation``
class is the only writer; everyone else reads deep-copied snapshots.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from make2manage.models.customers import Customer
from make2manage.models.decisions import Decision
from make2manage.models.departments import Department
from make2manage.models.events import GameEvent
from make2manage.models.orders import Order, ScheduledOrder
from make2manage.models.performance import ForecastData, GamePerformance
from make2manage.models.settings import GameSettings

# Journal fields that an undo/redo pair appends to but never restores
JOURNAL_FIELDS = frozenset({"events", "decisions", "event_sequence"})


class SessionStatus(str, Enum):
    SETUP = "setup"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


class GameSession(BaseModel):
    """Session clock and settings."""

    session_id: str = Field(description="Session identifier")
    status: SessionStatus = Field(default=SessionStatus.SETUP)
    settings: GameSettings = Field(default_factory=GameSettings)
    seed: Optional[int] = Field(default=None, description="Resolved integer seed")
    elapsed_ms: int = Field(default=0, ge=0, description="Active simulated time")
    paused_ms: int = Field(default=0, ge=0, description="Time ticked while paused")
    tick_count: int = Field(default=0, ge=0)

    @property
    def duration_ms(self) -> int:
        return self.settings.session_duration_ms

    @property
    def remaining_ms(self) -> int:
        return max(0, self.duration_ms - self.elapsed_ms)


class OrderLocation(BaseModel):
    """Where an order currently sits."""

    collection: str = Field(description="pending, queue, in_process, completed, rejected or failed")
    department_id: Optional[int] = Field(default=None)


class GameState(BaseModel):
    """The complete state of one session."""

    session: GameSession
    departments: list[Department] = Field(default_factory=list)
    customers: list[Customer] = Field(default_factory=list)
    scheduled_orders: list[ScheduledOrder] = Field(
        default_factory=list, description="Not yet released, in release order"
    )
    pending_orders: list[Order] = Field(
        default_factory=list, description="Released, waiting for their first station"
    )
    completed_orders: list[Order] = Field(default_factory=list)
    rejected_orders: list[Order] = Field(default_factory=list)
    failed_orders: list[Order] = Field(default_factory=list)
    events: list[GameEvent] = Field(default_factory=list)
    decisions: list[Decision] = Field(default_factory=list)
    performance: GamePerformance = Field(default_factory=GamePerformance)
    forecast: ForecastData = Field(default_factory=ForecastData)
    score: float = Field(default=0.0, ge=0)
    event_sequence: int = Field(default=0, ge=0)
    enqueue_sequence: int = Field(default=0, ge=0)

    @property
    def now_ms(self) -> int:
        return self.session.elapsed_ms

    def get_department(self, department_id: int) -> Optional[Department]:
        for dept in self.departments:
            if dept.id == department_id:
                return dept
        return None

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        for customer in self.customers:
            if customer.id == customer_id:
                return customer
        return None

    def active_orders(self) -> list[Order]:
        """Released orders that are not terminal, in a stable order."""
        orders = list(self.pending_orders)
        for dept in self.departments:
            orders.extend(dept.in_process)
            orders.extend(dept.queue)
        return orders

    def all_orders(self) -> list[Order]:
        return (
            self.active_orders()
            + self.completed_orders
            + self.rejected_orders
            + self.failed_orders
        )

    def locate_order(self, order_id: str) -> Optional[OrderLocation]:
        for order in self.pending_orders:
            if order.id == order_id:
                return OrderLocation(collection="pending")
        for dept in self.departments:
            for order in dept.queue:
                if order.id == order_id:
                    return OrderLocation(collection="queue", department_id=dept.id)
            for order in dept.in_process:
                if order.id == order_id:
                    return OrderLocation(collection="in_process", department_id=dept.id)
        for name in ("completed", "rejected", "failed"):
            for order in getattr(self, f"{name}_orders"):
                if order.id == order_id:
                    return OrderLocation(collection=name)
        return None

    def find_order(self, order_id: str) -> Optional[Order]:
        for order in self.all_orders():
            if order.id == order_id:
                return order
        return None

    def without_journal(self) -> dict[str, Any]:
        """Dump of the domain state, leaving out the event and decision journals."""
        return self.model_dump(mode="json", exclude=set(JOURNAL_FIELDS))
