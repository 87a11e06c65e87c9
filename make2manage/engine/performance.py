"""
Performance and forecast engine.

Metrics are recomputed from the current state every time they are
refreshed rather than updated incrementally, so they cannot drift.

The delivery forecast is a heuristic:

    expected delivery = now
                      + remaining work along the order's route
                      + bottleneck queue depth / bottleneck throughput

where remaining work is the unfinished part of the current step plus the
base duration (times the half-order multiplier) of every later step, and
the bottleneck term only applies to orders that still have to pass through
the bottleneck. Throughput is completed steps per simulated minute; before
the bottleneck has completed anything, each queued order is assumed to
take one standard duration per slot. It is an estimate, not a guarantee.
"""

from typing import Optional

from make2manage.config.schema import EngineConfig, get_default_config
from make2manage.models.departments import Department
from make2manage.models.game import GameState
from make2manage.models.orders import MS_PER_MINUTE, Order, OrderStatus, SLAStatus
from make2manage.models.performance import ForecastData, GamePerformance


class PerformanceEngine:
    """Computes KPIs and the delivery forecast."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or get_default_config()

    def refresh(self, state: GameState) -> None:
        """Recompute performance and forecast in place."""
        state.performance = self.compute_performance(state)
        state.forecast = self.compute_forecast(state)

    # -------------------------------------------------------------------------
    # KPIs
    # -------------------------------------------------------------------------

    def compute_performance(self, state: GameState) -> GamePerformance:
        completed = state.completed_orders
        on_time = sum(1 for o in completed if o.status == OrderStatus.COMPLETED_ON_TIME)
        late = len(completed) - on_time

        return GamePerformance(
            orders_completed=len(completed),
            orders_on_time=on_time,
            orders_late=late,
            orders_rejected=len(state.rejected_orders),
            orders_failed=len(state.failed_orders),
            on_time_rate=self.on_time_rate(completed),
            average_lead_time_minutes=self.average_lead_time_minutes(completed),
            total_value_delivered=sum(o.value for o in completed),
            score=state.score,
            utilization={d.id: d.utilization for d in state.departments},
            work_in_progress=sum(d.wip_count for d in state.departments),
        )

    @staticmethod
    def on_time_rate(completed: list[Order]) -> float:
        """Percent of completed orders that were on time."""
        if not completed:
            return 0.0
        on_time = sum(1 for o in completed if o.status == OrderStatus.COMPLETED_ON_TIME)
        return on_time / len(completed) * 100

    @staticmethod
    def average_lead_time_minutes(completed: list[Order]) -> float:
        lead_times = [o.lead_time_ms for o in completed if o.lead_time_ms is not None]
        if not lead_times:
            return 0.0
        return sum(lead_times) / len(lead_times) / MS_PER_MINUTE

    @staticmethod
    def bottleneck(state: GameState) -> Optional[Department]:
        """Department with the highest utilization, or None while all are idle."""
        busiest = None
        for department in state.departments:
            if department.utilization <= 0:
                continue
            if busiest is None or department.utilization > busiest.utilization:
                busiest = department
        return busiest

    # -------------------------------------------------------------------------
    # Forecast
    # -------------------------------------------------------------------------

    def compute_forecast(self, state: GameState) -> ForecastData:
        now = state.now_ms
        bottleneck = self.bottleneck(state)
        active = state.active_orders()

        utilizations = [d.utilization for d in state.departments]
        capacity_utilization = sum(utilizations) / len(utilizations) if utilizations else 0.0

        return ForecastData(
            average_lead_time_minutes=self.average_lead_time_minutes(state.completed_orders),
            capacity_utilization=capacity_utilization,
            expected_delivery_ms={
                o.id: self.expected_delivery_ms(state, o, bottleneck) for o in active
            },
            bottleneck_department=bottleneck.id if bottleneck else None,
            wip_capacity={d.id: d.wip_capacity_remaining for d in state.departments},
            sla_status={o.id: self.sla_status(o, now) for o in active},
        )

    def expected_delivery_ms(
        self,
        state: GameState,
        order: Order,
        bottleneck: Optional[Department],
    ) -> int:
        """Heuristic completion time of an active order."""
        estimate = state.now_ms + self.remaining_work_ms(state, order)
        if bottleneck is not None and self._still_visits(order, bottleneck.id):
            estimate += self.bottleneck_delay_ms(state, bottleneck)
        return estimate

    def remaining_work_ms(self, state: GameState, order: Order) -> int:
        total = 0
        started = order.remaining_ms is not None and order.step_duration_ms is not None
        for offset, department_id in enumerate(order.remaining_route):
            if offset == 0 and started:
                total += order.remaining_ms or 0
                continue
            department = state.get_department(department_id)
            if department is None:
                continue
            base = order.base_duration_ms(department_id, department.standard_processing_ms)
            total += round(base * order.processing_time_multiplier)
        return total

    def bottleneck_delay_ms(self, state: GameState, bottleneck: Department) -> int:
        depth = len(bottleneck.queue)
        if depth == 0:
            return 0
        elapsed_minutes = state.now_ms / MS_PER_MINUTE
        if bottleneck.total_processed > 0 and elapsed_minutes > 0:
            throughput = bottleneck.total_processed / elapsed_minutes
            return round(depth / throughput * MS_PER_MINUTE)
        return round(depth * bottleneck.standard_processing_ms / bottleneck.capacity)

    @staticmethod
    def _still_visits(order: Order, department_id: int) -> bool:
        route = order.remaining_route
        if order.status == OrderStatus.PROCESSING or order.held_from == OrderStatus.PROCESSING:
            route = route[1:]
        return department_id in route

    def sla_status(self, order: Order, now_ms: int) -> SLAStatus:
        due = order.due_at_ms
        if now_ms > due:
            return SLAStatus.OVERDUE
        window = due - order.created_at_ms
        if window > 0 and (now_ms - order.created_at_ms) / window > self.config.scoring.at_risk_threshold:
            return SLAStatus.AT_RISK
        return SLAStatus.ON_TRACK

    # -------------------------------------------------------------------------
    # Targets
    # -------------------------------------------------------------------------

    def utilization_band(self, utilization: float) -> str:
        """Classify utilization against the optimal range: low, optimal or high."""
        low, high = self.config.scoring.utilization_optimal_range
        if utilization < low:
            return "low"
        if utilization > high:
            return "high"
        return "optimal"

    def meets_on_time_target(self, performance: GamePerformance) -> bool:
        return performance.on_time_rate >= self.config.scoring.on_time_target
