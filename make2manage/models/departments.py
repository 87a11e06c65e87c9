"""
Department station models.

Each department is a finite-capacity queueing server: an ordered queue, up
to ``capacity`` orders in process, and running aggregates used by the
performance engine.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from make2manage.models.orders import Order


class DispatchPolicy(str, Enum):
    """Rule for picking the next queued order when a slot frees."""

    FIFO = "FIFO"
    EDD = "EDD"
    SPT = "SPT"


class DepartmentStatus(str, Enum):
    """Operating status of a station."""

    AVAILABLE = "available"
    BUSY = "busy"
    OVERLOADED = "overloaded"
    MAINTENANCE = "maintenance"


class Department(BaseModel):
    """A single shop-floor station."""

    id: int = Field(ge=1, description="Station identifier used in routes")
    name: str = Field(description="Display name")
    queue: list[Order] = Field(default_factory=list, description="Waiting orders in policy order")
    in_process: list[Order] = Field(default_factory=list, description="Orders occupying slots")
    capacity: int = Field(default=1, ge=1, description="Concurrent in-process orders")
    max_queue_size: int = Field(default=10, ge=0, description="Admission limit beyond capacity")
    dispatch_policy: DispatchPolicy = Field(default=DispatchPolicy.FIFO)
    efficiency: float = Field(default=1.0, gt=0, le=2.0)
    equipment_condition: float = Field(default=1.0, gt=0, le=1.0)
    standard_processing_ms: int = Field(gt=0, description="Base duration of one step")
    status: DepartmentStatus = Field(default=DepartmentStatus.AVAILABLE)
    maintenance_until_ms: Optional[int] = Field(
        default=None, description="Scheduled end of the current outage"
    )

    # Aggregates
    utilization: float = Field(default=0.0, ge=0, le=100)
    busy_ms: int = Field(default=0, ge=0, description="Slot-milliseconds spent processing")
    total_processed: int = Field(default=0, ge=0)
    total_cycle_ms: int = Field(default=0, ge=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def wip_count(self) -> int:
        """Orders queued or in process here."""
        return len(self.queue) + len(self.in_process)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def average_cycle_time_ms(self) -> float:
        if self.total_processed == 0:
            return 0.0
        return self.total_cycle_ms / self.total_processed

    @property
    def wip_limit(self) -> int:
        return self.max_queue_size + self.capacity

    @property
    def wip_capacity_remaining(self) -> int:
        return max(0, self.wip_limit - self.wip_count)

    @property
    def is_full(self) -> bool:
        return self.wip_count >= self.wip_limit

    @property
    def in_maintenance(self) -> bool:
        return self.status == DepartmentStatus.MAINTENANCE

    @property
    def free_slots(self) -> int:
        return max(0, self.capacity - len(self.in_process))

    def find_order(self, order_id: str) -> Optional[Order]:
        """Find an order queued or in process here."""
        for order in self.queue + self.in_process:
            if order.id == order_id:
                return order
        return None
