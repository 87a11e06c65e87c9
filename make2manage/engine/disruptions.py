"""
Random shop-floor events.

When events are enabled, each tick rolls for equipment failures, rush
requests, supplier delays and efficiency boosts. Chances are given per
simulated second and scaled by the length of the tick. The random stream
is keyed on the session seed and the tick number, so a replay with the
same tick sequence draws the same events.
"""

import logging
import random
from typing import Optional

from make2manage.config.schema import EngineConfig, get_default_config
from make2manage.engine.errors import InvalidCommand
from make2manage.engine.routing import Transition
from make2manage.engine.station import StationEngine
from make2manage.models.departments import Department
from make2manage.models.events import EventType, Severity
from make2manage.models.game import GameState
from make2manage.models.orders import MS_PER_MINUTE, OrderPriority, OrderStatus

logger = logging.getLogger(__name__)


class DisruptionEngine:
    """Draws and applies random shop-floor events."""

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        stations: Optional[StationEngine] = None,
    ):
        self.config = config or get_default_config()
        self.stations = stations or StationEngine()

    def roll(self, state: GameState, elapsed_ms: int, rng: random.Random) -> list[Transition]:
        """Roll every event kind once for a tick of ``elapsed_ms``."""
        if elapsed_ms <= 0:
            return []
        seconds = elapsed_ms / 1000
        handlers = {
            "equipment_failure": self._equipment_failure,
            "rush_order": self._rush_order,
            "delivery_delay": self._delivery_delay,
            "efficiency_boost": self._efficiency_boost,
        }
        transitions = []
        for kind, probability in self.config.events.probability_per_second.items():
            handler = handlers.get(kind)
            if handler is None:
                continue
            if rng.random() < min(1.0, probability * seconds):
                transition = handler(state, rng)
                if transition is not None:
                    transitions.append(transition)
        return transitions

    # -------------------------------------------------------------------------
    # Station outages
    # -------------------------------------------------------------------------

    def fail_station(
        self,
        state: GameState,
        department_id: int,
        repair_ms: Optional[int] = None,
    ) -> Transition:
        """Take a station down; with no repair time it stays down until repaired.

        Raises:
            InvalidCommand: If the station does not exist or is already down
        """
        department = self._department(state, department_id)
        if department.in_maintenance:
            raise InvalidCommand(f"{department.name} is already under maintenance")
        until = state.now_ms + repair_ms if repair_ms is not None else None
        self.stations.start_maintenance(department, until)
        message = f"Equipment failure in {department.name}"
        if repair_ms is not None:
            message += f", repair takes {repair_ms / MS_PER_MINUTE:.1f} min"
        return Transition(
            EventType.EQUIPMENT_FAILURE,
            message,
            Severity.ERROR,
            department_id=department.id,
        )

    def repair_station(self, state: GameState, department_id: int) -> Transition:
        """Bring a station back into service.

        Raises:
            InvalidCommand: If the station does not exist or is not down
        """
        department = self._department(state, department_id)
        if not department.in_maintenance:
            raise InvalidCommand(f"{department.name} is not under maintenance")
        self.stations.end_maintenance(department)
        return Transition(
            EventType.EQUIPMENT_REPAIRED,
            f"{department.name} is back in service",
            Severity.SUCCESS,
            department_id=department.id,
        )

    def finish_repairs(self, state: GameState) -> list[Transition]:
        """End outages whose repair time has passed."""
        transitions = []
        for department in state.departments:
            until = department.maintenance_until_ms
            if department.in_maintenance and until is not None and until <= state.now_ms:
                transitions.append(self.repair_station(state, department.id))
        return transitions

    # -------------------------------------------------------------------------
    # Event kinds
    # -------------------------------------------------------------------------

    def _equipment_failure(self, state: GameState, rng: random.Random) -> Optional[Transition]:
        candidates = [d for d in state.departments if not d.in_maintenance]
        if not candidates:
            return None
        department = rng.choice(candidates)
        low, high = self.config.events.repair_minutes
        repair_ms = round(rng.uniform(low, high) * MS_PER_MINUTE)
        return self.fail_station(state, department.id, repair_ms)

    def _rush_order(self, state: GameState, rng: random.Random) -> Optional[Transition]:
        waiting = [
            o
            for d in state.departments
            for o in d.queue
            if o.status == OrderStatus.QUEUED and not o.rush_order
        ]
        if not waiting:
            return None
        order = rng.choice(waiting)
        order.rush_order = True
        order.priority = OrderPriority.URGENT
        return Transition(
            EventType.RUSH_ORDER,
            f"Customer {order.customer_name} asks to rush order {order.id}",
            Severity.WARNING,
            order_id=order.id,
            department_id=order.current_department_id,
        )

    def _delivery_delay(self, state: GameState, rng: random.Random) -> Optional[Transition]:
        department = rng.choice(state.departments)
        return Transition(
            EventType.DELIVERY_DELAY,
            f"Supplier delay reported for {department.name}",
            Severity.WARNING,
            department_id=department.id,
        )

    def _efficiency_boost(self, state: GameState, rng: random.Random) -> Optional[Transition]:
        department = rng.choice(state.departments)
        events = self.config.events
        department.efficiency = round(
            min(events.max_efficiency, department.efficiency * events.efficiency_boost_factor), 3
        )
        return Transition(
            EventType.EFFICIENCY_BOOST,
            f"{department.name} efficiency rises to {department.efficiency:.0%}",
            Severity.SUCCESS,
            department_id=department.id,
        )

    def _department(self, state: GameState, department_id: int) -> Department:
        department = state.get_department(department_id)
        if department is None:
            raise InvalidCommand(f"Unknown department {department_id}")
        return department
