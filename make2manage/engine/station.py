"""
Department station engine.

Operates on ``Department`` models in place. The ``Simulation`` only ever
hands this engine a private working copy of the state, so in-place updates
never leak into a published snapshot.

Operations:
- enqueue: admission control against the WIP limit
- dispatch: fill free slots by the station's dispatch policy
- advance: burn down remaining time, accrue busy time, finish steps
- maintenance: freeze and thaw a station without losing progress
"""

import logging
from typing import Optional

from make2manage.engine.dispatch import select_next, sort_queue
from make2manage.engine.errors import CapacityExceeded, OrderNotFound
from make2manage.models.departments import Department, DepartmentStatus, DispatchPolicy
from make2manage.models.orders import Order, OrderStatus, StepTimestamp

logger = logging.getLogger(__name__)


class StationEngine:
    """Queueing-server behaviour of a department."""

    # -------------------------------------------------------------------------
    # Admission and dispatch
    # -------------------------------------------------------------------------

    def enqueue(
        self,
        department: Department,
        order: Order,
        now_ms: int,
        sequence: int,
        restore: bool = False,
    ) -> None:
        """Admit an order into the station queue.

        Args:
            department: Station to admit into
            order: Order whose current route step is this station
            now_ms: Session time of admission
            sequence: Global enqueue sequence number for FIFO ordering
            restore: Re-admit with the order's existing queue position and
                visit record (used when a recall is reversed)

        Raises:
            CapacityExceeded: If the station's WIP is at its limit
        """
        if department.wip_count >= department.wip_limit:
            raise CapacityExceeded(
                department.id,
                f"{department.name} is full ({department.wip_count}/{department.wip_limit} WIP)",
            )

        order.status = OrderStatus.QUEUED
        order.remaining_ms = None
        order.step_duration_ms = None
        order.blocked = False
        if not (restore and order.current_visit() is not None):
            order.enqueue_seq = sequence
            order.timestamps.append(
                StepTimestamp(
                    department_id=department.id,
                    step_index=order.current_step_index,
                    enqueued_at_ms=now_ms,
                )
            )

        department.queue = sort_queue(department.queue + [order], department)
        self.refresh_status(department)

    def dispatch(self, department: Department, now_ms: int) -> list[Order]:
        """Move queued orders into free slots by policy.

        Returns:
            Orders that started processing, in start order
        """
        if department.in_maintenance:
            return []

        started = []
        while department.free_slots > 0:
            order = select_next(department)
            if order is None:
                break
            department.queue = [o for o in department.queue if o.id != order.id]

            duration = self.effective_duration_ms(department, order)
            order.status = OrderStatus.PROCESSING
            order.step_duration_ms = duration
            order.remaining_ms = duration
            visit = order.current_visit()
            if visit is not None:
                visit.start_ms = now_ms
            department.in_process.append(order)
            started.append(order)

        if started:
            self.refresh_status(department)
        return started

    def effective_duration_ms(self, department: Department, order: Order) -> int:
        """Processing time of the order's step at this station.

        base x processing_time_multiplier x (1 / efficiency) x (1 / equipment_condition)
        """
        base = order.base_duration_ms(department.id, department.standard_processing_ms)
        duration = (
            base
            * order.processing_time_multiplier
            / department.efficiency
            / department.equipment_condition
        )
        return max(1, round(duration))

    # -------------------------------------------------------------------------
    # Time
    # -------------------------------------------------------------------------

    def time_to_next_completion(self, department: Department) -> Optional[int]:
        """Milliseconds until the next in-process step finishes, if any."""
        if department.in_maintenance:
            return None
        remaining = [o.remaining_ms for o in department.in_process if _is_running(o)]
        return min(remaining) if remaining else None

    def advance(self, department: Department, elapsed_ms: int, now_ms: int) -> list[Order]:
        """Advance the station by ``elapsed_ms`` ending at session time ``now_ms``.

        Orders whose remaining time reaches zero finish their step, are
        removed from the slots and returned for routing.

        Returns:
            Finished orders, in slot order
        """
        finished = []
        if elapsed_ms > 0 and not department.in_maintenance:
            start_ms = now_ms - elapsed_ms
            for order in department.in_process:
                if not _is_running(order):
                    continue
                run = min(elapsed_ms, order.remaining_ms)
                order.remaining_ms -= run
                department.busy_ms += run
                if order.remaining_ms == 0:
                    self._finish_step(department, order, start_ms + run)
                    finished.append(order)

        if finished:
            done = {o.id for o in finished}
            department.in_process = [o for o in department.in_process if o.id not in done]
            self.refresh_status(department)
        self.update_utilization(department, now_ms)
        return finished

    def _finish_step(self, department: Department, order: Order, end_ms: int) -> None:
        visit = order.current_visit()
        if visit is not None:
            visit.end_ms = end_ms
            department.total_cycle_ms += visit.cycle_ms or 0
        department.total_processed += 1

    def update_utilization(self, department: Department, now_ms: int) -> None:
        """Busy time over elapsed session time per slot, clamped to [0, 100]."""
        if now_ms <= 0:
            department.utilization = 0.0
            return
        ratio = department.busy_ms / (now_ms * department.capacity) * 100
        department.utilization = max(0.0, min(100.0, ratio))

    # -------------------------------------------------------------------------
    # Blocking, removal and policy
    # -------------------------------------------------------------------------

    def park_blocked(self, department: Department, order: Order) -> None:
        """Keep a finished order in its slot until the next station admits it."""
        order.blocked = True
        order.status = OrderStatus.PROCESSING
        department.in_process.append(order)
        self.refresh_status(department)

    def blocked_orders(self, department: Department) -> list[Order]:
        return [o for o in department.in_process if o.blocked]

    def release_slot(self, department: Department, order_id: str) -> Order:
        """Remove an order from a slot."""
        for order in department.in_process:
            if order.id == order_id:
                department.in_process = [o for o in department.in_process if o.id != order_id]
                self.refresh_status(department)
                return order
        raise OrderNotFound(f"Order {order_id} is not in process at {department.name}")

    def remove_queued(self, department: Department, order_id: str, keep_visit: bool = False) -> Order:
        """Take a waiting order out of the queue.

        Args:
            department: Station holding the order
            order_id: Order to remove
            keep_visit: Keep the open visit record so a later restore can
                reuse the queue position

        Raises:
            OrderNotFound: If the order is not waiting in this queue
        """
        for order in department.queue:
            if order.id == order_id:
                department.queue = [o for o in department.queue if o.id != order_id]
                if not keep_visit:
                    visit = order.current_visit()
                    if visit is not None and visit.start_ms is None:
                        order.timestamps.remove(visit)
                self.refresh_status(department)
                return order
        raise OrderNotFound(f"Order {order_id} is not queued at {department.name}")

    def set_policy(self, department: Department, policy: DispatchPolicy) -> None:
        """Switch the dispatch policy and re-sort the queue."""
        if department.dispatch_policy == policy:
            return
        logger.debug(
            "%s switches dispatch policy %s -> %s",
            department.name,
            department.dispatch_policy.value,
            policy.value,
        )
        department.dispatch_policy = policy
        department.queue = sort_queue(department.queue, department)

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def start_maintenance(self, department: Department, until_ms: Optional[int]) -> None:
        """Freeze the station; in-process orders keep their remaining time."""
        department.status = DepartmentStatus.MAINTENANCE
        department.maintenance_until_ms = until_ms

    def end_maintenance(self, department: Department) -> None:
        department.maintenance_until_ms = None
        department.status = DepartmentStatus.AVAILABLE
        self.refresh_status(department)

    def refresh_status(self, department: Department) -> None:
        if department.in_maintenance:
            return
        if department.wip_count >= department.wip_limit:
            department.status = DepartmentStatus.OVERLOADED
        elif department.in_process:
            department.status = DepartmentStatus.BUSY
        else:
            department.status = DepartmentStatus.AVAILABLE


def _is_running(order: Order) -> bool:
    return (
        order.status == OrderStatus.PROCESSING
        and not order.blocked
        and order.remaining_ms is not None
        and order.remaining_ms > 0
    )
