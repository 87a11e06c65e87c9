"""
Event stream for live dashboards.

Events are appended to ``GameState.events`` while a mutation runs and
handed to subscribers only after the mutation has been committed, so a
subscriber always sees a state in which the event has happened.
"""

import logging
from typing import Callable, Optional

from make2manage.models.events import EventType, GameEvent, Severity
from make2manage.models.game import GameState
from make2manage.models.performance import GamePerformance

logger = logging.getLogger(__name__)

Subscriber = Callable[[GameEvent], None]


def append_event(
    state: GameState,
    event_type: EventType,
    message: str,
    severity: Severity = Severity.INFO,
    department_id: Optional[int] = None,
    order_id: Optional[str] = None,
    decision_id: Optional[str] = None,
    kpi_snapshot: Optional[GamePerformance] = None,
    max_events: Optional[int] = None,
) -> GameEvent:
    """Create the next event of a session and append it to the state.

    Args:
        state: Working state to append to
        max_events: Keep only this many of the newest events, if set

    Returns:
        The new event
    """
    state.event_sequence += 1
    event = GameEvent(
        id=f"EVT-{state.event_sequence:06d}",
        sequence=state.event_sequence,
        type=event_type,
        timestamp_ms=state.now_ms,
        message=message,
        severity=severity,
        department_id=department_id,
        order_id=order_id,
        decision_id=decision_id,
        kpi_snapshot=kpi_snapshot,
    )
    state.events.append(event)
    if max_events is not None and len(state.events) > max_events:
        state.events = state.events[-max_events:]
    return event


class EventStream:
    """Fan-out of committed events to subscribers."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unsubscribes it."""
        self._subscribers.append(subscriber)
        return lambda: self.unsubscribe(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def publish(self, events: list[GameEvent]) -> None:
        for event in events:
            if event.severity == Severity.ERROR:
                logger.warning("%s: %s", event.type.value, event.message)
            else:
                logger.debug("%s: %s", event.type.value, event.message)
            for subscriber in list(self._subscribers):
                subscriber(event.model_copy(deep=True))
