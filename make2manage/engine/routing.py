"""
Routing and flow control.

Owns the per-order state machine:

    queued -> processing -> queued at next station
                         -> completed_on_time / completed_late (last step)
    queued / processing <-> on_hold
    any active state -> error (unknown station on the route)

Every operation mutates the working state it is given and returns
``Transition`` records that the simulation turns into events.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from make2manage.config.schema import EngineConfig, get_default_config
from make2manage.engine.errors import (
    CapacityExceeded,
    InvalidCommand,
    InvalidRoute,
    OrderNotFound,
)
from make2manage.engine.station import StationEngine
from make2manage.models.departments import Department
from make2manage.models.events import EventType, Severity
from make2manage.models.game import GameState
from make2manage.models.orders import (
    HALF_ORDER_MULTIPLIER,
    HalfOrderReason,
    Order,
    OrderStatus,
)
from make2manage.models.settings import OverflowPolicy

logger = logging.getLogger(__name__)


@dataclass
class Transition:
    """Something that happened to an order, to be published as an event."""

    event_type: EventType
    message: str
    severity: Severity = Severity.INFO
    order_id: Optional[str] = None
    department_id: Optional[int] = None


class FlowController:
    """Moves orders between stations along their routes."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        stations: Optional[StationEngine] = None,
    ):
        self.config = config or get_default_config()
        self.stations = stations or StationEngine()

    # -------------------------------------------------------------------------
    # Admission
    # -------------------------------------------------------------------------

    def enqueue_current_step(
        self,
        state: GameState,
        order: Order,
        now_ms: int,
        restore: bool = False,
    ) -> Department:
        """Enqueue an order at the station of its current route step.

        Raises:
            InvalidRoute: If the station does not exist
            CapacityExceeded: If the station is at its WIP limit
        """
        department = state.get_department(order.current_department_id)
        if department is None:
            raise InvalidRoute(order.id, order.current_department_id)
        self.stations.enqueue(
            department,
            order,
            now_ms,
            sequence=state.enqueue_sequence + 1,
            restore=restore,
        )
        state.enqueue_sequence = max(state.enqueue_sequence, order.enqueue_seq)
        return department

    def release(self, state: GameState, order_id: str, now_ms: int) -> Transition:
        """Move a pending order into its first station.

        Raises:
            OrderNotFound: If the order is not in the pending pool
            InvalidCommand: If the order is on hold
            InvalidRoute: If its first station does not exist
            CapacityExceeded: If its first station is full
        """
        order = _find(state.pending_orders, order_id)
        if order is None:
            raise OrderNotFound(f"Order {order_id} is not pending release")
        restore = order.current_visit() is not None
        department = self.enqueue_current_step(state, order, now_ms, restore=restore)
        state.pending_orders = [o for o in state.pending_orders if o.id != order_id]
        return Transition(
            EventType.ORDER_RELEASED,
            f"Order {order_id} released to {department.name}",
            order_id=order_id,
            department_id=department.id,
        )

    def recall(self, state: GameState, order_id: str) -> Transition:
        """Pull a released order that has not started back into the pending pool.

        The order keeps its queue position and visit record so that a
        following release restores it exactly.

        Raises:
            OrderNotFound: If the order is not waiting at its first station
        """
        for department in state.departments:
            order = _find(department.queue, order_id)
            if order is None:
                continue
            if order.current_step_index != 0 or order.status != OrderStatus.QUEUED:
                break
            self.stations.remove_queued(department, order_id, keep_visit=True)
            self.add_pending(state, order)
            return Transition(
                EventType.ORDER_RECALLED,
                f"Order {order_id} recalled from {department.name}",
                order_id=order_id,
                department_id=department.id,
            )
        raise OrderNotFound(f"Order {order_id} is not waiting at its first station")

    def add_pending(self, state: GameState, order: Order) -> None:
        """Insert into the pending pool, kept in release order."""
        order.status = OrderStatus.QUEUED
        pending = state.pending_orders + [order]
        state.pending_orders = sorted(pending, key=lambda o: (o.created_at_ms, o.id))

    # -------------------------------------------------------------------------
    # Step completion
    # -------------------------------------------------------------------------

    def complete_step(
        self,
        state: GameState,
        department: Department,
        order: Order,
        now_ms: int,
    ) -> list[Transition]:
        """Route an order whose step at ``department`` just finished."""
        if order.is_last_step:
            return [self.finalize(state, order, now_ms)]
        return self._advance(state, department, order, now_ms, parked=False)

    def retry_blocked(self, state: GameState, now_ms: int) -> list[Transition]:
        """Push blocked orders onward where the next station has room."""
        transitions = []
        for department in state.departments:
            for order in self.stations.blocked_orders(department):
                next_id = order.route[order.current_step_index + 1]
                next_department = state.get_department(next_id)
                if next_department is not None and next_department.is_full:
                    continue
                self.stations.release_slot(department, order.id)
                order.blocked = False
                transitions.extend(
                    self._advance(state, department, order, now_ms, parked=True)
                )
        return transitions

    def _advance(
        self,
        state: GameState,
        department: Department,
        order: Order,
        now_ms: int,
        parked: bool,
    ) -> list[Transition]:
        next_id = order.route[order.current_step_index + 1]
        next_department = state.get_department(next_id)
        if next_department is None:
            order.current_step_index += 1
            return [self.fail(state, order, InvalidRoute(order.id, next_id))]

        order.current_step_index += 1
        try:
            self.enqueue_current_step(state, order, now_ms)
        except CapacityExceeded as e:
            order.current_step_index -= 1
            if self._overflow_policy(state) == OverflowPolicy.REJECT:
                return [self.reject(state, order, str(e))]
            self.stations.park_blocked(department, order)
            if parked:
                return []
            return [
                Transition(
                    EventType.ORDER_BLOCKED,
                    f"Order {order.id} waits at {department.name}: {e}",
                    Severity.WARNING,
                    order_id=order.id,
                    department_id=next_id,
                )
            ]
        return [
            Transition(
                EventType.ORDER_ADVANCED,
                f"Order {order.id} moved from {department.name} to {next_department.name}",
                order_id=order.id,
                department_id=next_id,
            )
        ]

    def _overflow_policy(self, state: GameState) -> OverflowPolicy:
        return state.session.settings.overflow_policy

    # -------------------------------------------------------------------------
    # Terminal transitions
    # -------------------------------------------------------------------------

    def finalize(self, state: GameState, order: Order, now_ms: int) -> Transition:
        """Complete an order after its last step and book the reward."""
        on_time = now_ms <= order.due_at_ms
        order.status = OrderStatus.COMPLETED_ON_TIME if on_time else OrderStatus.COMPLETED_LATE
        order.completed_at_ms = now_ms
        order.remaining_ms = None
        state.completed_orders.append(order)

        reward = order.value if on_time else order.value * self.config.scoring.late_reward_factor
        state.score += reward

        state.customers = [
            c.record_delivery(on_time) if c.id == order.customer_id else c
            for c in state.customers
        ]

        if on_time:
            return Transition(
                EventType.ORDER_COMPLETED,
                f"Order {order.id} completed on time (+${reward:,.0f})",
                Severity.SUCCESS,
                order_id=order.id,
            )
        return Transition(
            EventType.ORDER_LATE,
            f"Order {order.id} completed late (+${reward:,.0f})",
            Severity.WARNING,
            order_id=order.id,
        )

    def fail(self, state: GameState, order: Order, error: Exception) -> Transition:
        """Move an order to the failed collection (terminal)."""
        logger.warning("Order %s failed: %s", order.id, error)
        order.status = OrderStatus.ERROR
        order.remaining_ms = None
        order.blocked = False
        state.failed_orders.append(order)
        department_id = getattr(error, "department_id", None)
        return Transition(
            EventType.ORDER_ERROR,
            str(error),
            Severity.ERROR,
            order_id=order.id,
            department_id=department_id,
        )

    def reject(self, state: GameState, order: Order, reason: str) -> Transition:
        """Move an order to the rejected collection (terminal)."""
        order.status = OrderStatus.REJECTED
        order.remaining_ms = None
        order.blocked = False
        state.rejected_orders.append(order)
        return Transition(
            EventType.ORDER_REJECTED,
            f"Order {order.id} rejected: {reason}",
            Severity.ERROR,
            order_id=order.id,
        )

    # -------------------------------------------------------------------------
    # Manual intervention
    # -------------------------------------------------------------------------

    def hold(self, state: GameState, order_id: str) -> Transition:
        """Put a queued or processing order on hold.

        Raises:
            OrderNotFound: If the order is not at a station
            InvalidCommand: If the order cannot be held in its current state
        """
        department, order = self._at_station(state, order_id)
        if order.status not in (OrderStatus.QUEUED, OrderStatus.PROCESSING) or order.blocked:
            raise InvalidCommand(f"Order {order_id} cannot be held while {order.status.value}")
        order.held_from = order.status
        order.status = OrderStatus.ON_HOLD
        return Transition(
            EventType.ORDER_HELD,
            f"Order {order_id} on hold at {department.name}",
            Severity.WARNING,
            order_id=order_id,
            department_id=department.id,
        )

    def resume(self, state: GameState, order_id: str) -> Transition:
        """Return a held order to the state it was held from.

        Raises:
            OrderNotFound: If the order is not at a station
            InvalidCommand: If the order is not on hold
        """
        department, order = self._at_station(state, order_id)
        if order.status != OrderStatus.ON_HOLD or order.held_from is None:
            raise InvalidCommand(f"Order {order_id} is not on hold")
        order.status = order.held_from
        order.held_from = None
        return Transition(
            EventType.ORDER_RESUMED,
            f"Order {order_id} resumed at {department.name}",
            order_id=order_id,
            department_id=department.id,
        )

    def rework(
        self,
        state: GameState,
        order_id: str,
        to_step: int,
        now_ms: int,
    ) -> Transition:
        """Send a waiting order back to an earlier route step.

        The order becomes a half-order tagged ``rework`` for its remaining
        steps.

        Raises:
            OrderNotFound: If the order is not waiting in a queue
            InvalidCommand: If ``to_step`` is not an earlier step
        """
        department, order = self._at_station(state, order_id)
        if order.status != OrderStatus.QUEUED:
            raise InvalidCommand(f"Only waiting orders can be reworked, {order_id} is {order.status.value}")
        if not 0 <= to_step < order.current_step_index:
            raise InvalidCommand(
                f"Rework step must be before step {order.current_step_index}, got {to_step}"
            )
        self.stations.remove_queued(department, order_id)
        order.rework_count += 1
        order.current_step_index = to_step
        order.half_order_reason = HalfOrderReason.REWORK
        order.processing_time_multiplier = HALF_ORDER_MULTIPLIER
        target = self.enqueue_current_step(state, order, now_ms)
        return Transition(
            EventType.ORDER_REWORKED,
            f"Order {order_id} sent back to {target.name} for rework",
            Severity.WARNING,
            order_id=order_id,
            department_id=target.id,
        )

    def _at_station(self, state: GameState, order_id: str) -> tuple[Department, Order]:
        for department in state.departments:
            order = department.find_order(order_id)
            if order is not None:
                return department, order
        if state.find_order(order_id) is not None:
            raise InvalidCommand(f"Order {order_id} is not at a station")
        raise OrderNotFound(f"Unknown order {order_id}")


def _find(orders: list[Order], order_id: str) -> Optional[Order]:
    for order in orders:
        if order.id == order_id:
            return order
    return None
