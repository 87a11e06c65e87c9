"""
Derived performance and forecast models.

These are recomputed from state by the performance engine and are never
edited by hand.
"""

from typing import Optional

from pydantic import BaseModel, Field

from make2manage.models.orders import SLAStatus


class GamePerformance(BaseModel):
    """Key performance indicators of a session."""

    orders_completed: int = Field(default=0, ge=0)
    orders_on_time: int = Field(default=0, ge=0)
    orders_late: int = Field(default=0, ge=0)
    orders_rejected: int = Field(default=0, ge=0)
    orders_failed: int = Field(default=0, ge=0)
    on_time_rate: float = Field(default=0.0, ge=0, le=100, description="Percent of completed on time")
    average_lead_time_minutes: float = Field(default=0.0, ge=0)
    total_value_delivered: float = Field(default=0.0, ge=0)
    score: float = Field(default=0.0, ge=0)
    utilization: dict[int, float] = Field(
        default_factory=dict, description="Utilization percent by department id"
    )
    work_in_progress: int = Field(default=0, ge=0)


class ForecastData(BaseModel):
    """Capacity-based delivery forecast.

    Expected deliveries are a heuristic estimate, not a promise.
    """

    average_lead_time_minutes: float = Field(default=0.0, ge=0)
    capacity_utilization: float = Field(
        default=0.0, ge=0, le=100, description="Mean utilization across departments"
    )
    expected_delivery_ms: dict[str, int] = Field(
        default_factory=dict, description="Estimated completion time by active order id"
    )
    bottleneck_department: Optional[int] = Field(default=None)
    wip_capacity: dict[int, int] = Field(
        default_factory=dict, description="Free WIP slots by department id"
    )
    sla_status: dict[str, SLAStatus] = Field(default_factory=dict)
