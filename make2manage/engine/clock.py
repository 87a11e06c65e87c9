"""
Simulated clock and event scheduling.

Time only moves when ``Simulation.tick`` is called. The scheduler scales
each tick by the session speed and finds the next moment something is due
(a release, a step completion or the end of a maintenance outage), so the
simulation can jump straight from event to event in timestamp order.
Nothing here reads the wall clock.
"""

from typing import Optional

from make2manage.engine.station import StationEngine
from make2manage.models.game import GameState
from make2manage.models.orders import ScheduledOrder

SPEED_MULTIPLIERS = (1, 2, 4, 8)


class Scheduler:
    """Finds due events on the session timeline."""

    def __init__(self, stations: Optional[StationEngine] = None):
        self.stations = stations or StationEngine()

    def scale(self, delta_ms: int, speed: int) -> int:
        """Simulated milliseconds covered by a tick."""
        if speed not in SPEED_MULTIPLIERS:
            raise ValueError(f"Speed must be one of {SPEED_MULTIPLIERS}, got {speed}")
        if delta_ms < 0:
            raise ValueError(f"Tick length must be non-negative, got {delta_ms}")
        return delta_ms * speed

    @staticmethod
    def order_schedule(scheduled: list[ScheduledOrder]) -> list[ScheduledOrder]:
        """Release-time order; ``sorted`` is stable so ties keep insertion order."""
        return sorted(scheduled, key=lambda s: s.release_time_ms)

    def pop_due_releases(self, state: GameState, now_ms: int) -> list[ScheduledOrder]:
        """Remove and return scheduled orders whose release time has come."""
        due = []
        remaining = []
        for scheduled in state.scheduled_orders:
            if scheduled.release_time_ms <= now_ms:
                due.append(scheduled)
            else:
                remaining.append(scheduled)
        if due:
            state.scheduled_orders = remaining
        return due

    def next_release_ms(self, state: GameState) -> Optional[int]:
        if not state.scheduled_orders:
            return None
        return min(s.release_time_ms for s in state.scheduled_orders)

    def next_event_ms(self, state: GameState) -> Optional[int]:
        """Earliest future moment at which something is due."""
        now = state.now_ms
        candidates = []

        release = self.next_release_ms(state)
        if release is not None:
            candidates.append(release)

        for department in state.departments:
            remaining = self.stations.time_to_next_completion(department)
            if remaining is not None:
                candidates.append(now + remaining)
            if department.in_maintenance and department.maintenance_until_ms is not None:
                candidates.append(department.maintenance_until_ms)

        future = [t for t in candidates if t > now]
        return min(future) if future else None
