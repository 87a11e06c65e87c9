"""
Main simulation engine for make2manage.

``Simulation`` is the single mutation authority of a session. It
orchestrates the component engines:

1. Scheduler: scales ticks and finds the next due event
2. OrderGenerator: builds the order book at start
3. StationEngine / FlowController: queueing, dispatch and routing
4. DisruptionEngine: random shop-floor events
5. PerformanceEngine: KPIs and the delivery forecast
6. DecisionLog / EventStream: journal and live events

Every mutation works on a private deep copy of the state under a lock and
is committed by swapping the reference, so a failed command leaves the
committed state untouched apart from the reported failure event. Readers
get deep-copied snapshots and never see a half-applied change.

Commands only change what they name. Releases, dispatching and routing
happen when the clock moves, at the start of every tick and at each due
event inside it.
"""

import logging
import threading
import uuid
from typing import Any, Callable, Optional, TypeVar

from pydantic import ValidationError

from make2manage.config.schema import EngineConfig, get_default_config
from make2manage.engine import rng as seeds
from make2manage.engine.clock import Scheduler
from make2manage.engine.disruptions import DisruptionEngine
from make2manage.engine.errors import (
    CapacityExceeded,
    InvalidCommand,
    InvalidRoute,
    InvalidSettings,
    SessionClosed,
    SimulationError,
    UndoUnavailable,
)
from make2manage.engine.events import EventStream, Subscriber, append_event
from make2manage.engine.generator import OrderGenerator
from make2manage.engine.journal import DecisionLog
from make2manage.engine.performance import PerformanceEngine
from make2manage.engine.routing import FlowController, Transition
from make2manage.engine.station import StationEngine
from make2manage.engine.validation import validate_settings
from make2manage.models.decisions import (
    ChangeSettings,
    Command,
    Decision,
    DecisionType,
    HoldOrder,
    PauseSession,
    RecallOrder,
    ReleaseOrder,
    ResumeOrder,
    ResumeSession,
)
from make2manage.models.departments import Department, DispatchPolicy
from make2manage.models.events import EventType, GameEvent, Severity
from make2manage.models.game import GameSession, GameState, SessionStatus
from make2manage.models.orders import MS_PER_MINUTE, Order
from make2manage.models.settings import MUTABLE_SETTINGS, GameSettings, OverflowPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Events that carry a KPI snapshot
KPI_EVENTS = frozenset(
    {EventType.ORDER_RELEASED, EventType.ORDER_COMPLETED, EventType.ORDER_LATE}
)


def build_departments(config: EngineConfig, settings: GameSettings) -> list[Department]:
    """Create the shop floor from configuration and per-session policy overrides."""
    departments = []
    for dept in config.departments:
        departments.append(
            Department(
                id=dept.id,
                name=dept.name,
                capacity=dept.capacity,
                max_queue_size=dept.max_queue_size,
                dispatch_policy=settings.dispatch_policies.get(dept.id, dept.dispatch_policy),
                efficiency=dept.efficiency,
                equipment_condition=dept.equipment_condition,
                standard_processing_ms=round(dept.standard_minutes * MS_PER_MINUTE),
            )
        )
    return departments


class Simulation:
    """One game session.

    Usage:
        simulation = Simulation(GameSettings(random_seed=42))
        simulation.start()
        simulation.tick(1000)
        state = simulation.snapshot()
    """

    def __init__(
        self,
        settings: Optional[GameSettings] = None,
        config: Optional[EngineConfig] = None,
        session_id: Optional[str] = None,
    ):
        """Create a session in setup.

        Args:
            settings: Session settings (defaults if None)
            config: Engine configuration (defaults if None)
            session_id: Session identifier (random if None)
        """
        self.config = config or get_default_config()
        settings = settings or GameSettings()

        self.stations = StationEngine()
        self.scheduler = Scheduler(self.stations)
        self.flow = FlowController(self.config, self.stations)
        self.generator = OrderGenerator(self.config)
        self.disruptions = DisruptionEngine(self.config, self.stations)
        self.performance = PerformanceEngine(self.config)
        self.journal = DecisionLog()
        self.stream = EventStream()

        self._lock = threading.RLock()
        self._state = GameState(
            session=GameSession(
                session_id=session_id or uuid.uuid4().hex[:12],
                settings=settings,
            ),
            departments=build_departments(self.config, settings),
            customers=[c.model_copy(deep=True) for c in self.config.customers],
        )

    @classmethod
    def from_state(cls, state: GameState, config: Optional[EngineConfig] = None) -> "Simulation":
        """Resume a session from a saved state."""
        simulation = cls(state.session.settings, config, state.session.session_id)
        simulation._state = state.model_copy(deep=True)
        return simulation

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    @property
    def session_id(self) -> str:
        return self._state.session.session_id

    @property
    def status(self) -> SessionStatus:
        return self._state.session.status

    def snapshot(self) -> GameState:
        """Deep copy of the last committed state."""
        return self._state.model_copy(deep=True)

    def events(self, since: int = 0) -> list[GameEvent]:
        """Events with a sequence number greater than ``since``."""
        return [e.model_copy(deep=True) for e in self._state.events if e.sequence > since]

    def decisions(self) -> list[Decision]:
        return [d.model_copy(deep=True) for d in self._state.decisions]

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Receive every event after it has been committed."""
        return self.stream.subscribe(subscriber)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> GameState:
        """Generate the order book and start the clock.

        Raises:
            InvalidSeed: Malformed seed in procedural mode
            EmptySchedule: Predetermined mode without scheduled orders
            InvalidCommand: Already started, or the schedule has errors
            SessionClosed: The session has completed
        """

        def apply(state: GameState) -> None:
            session = state.session
            if session.status == SessionStatus.COMPLETED:
                raise SessionClosed("Session is completed")
            if session.status != SessionStatus.SETUP:
                raise InvalidCommand("Session has already been started")

            settings = session.settings
            seed = self.generator.resolve_seed(settings)
            generated = self.generator.generate(settings, state.customers, seed)

            findings = validate_settings(settings, self.config)
            for warning in findings.warnings:
                logger.warning("%s", warning)
            if not findings.valid:
                raise InvalidCommand("; ".join(str(e) for e in findings.errors))

            if self.config.randomize_departments:
                self.generator.randomize_departments(state.departments, seed)

            session.seed = seed
            session.status = SessionStatus.RUNNING
            state.scheduled_orders = generated.scheduled
            self._emit(
                state,
                Transition(
                    EventType.GAME_STARTED,
                    f"Session started: {generated.order_count} {generated.mode} orders "
                    f"over {settings.session_duration} minutes",
                    Severity.SUCCESS,
                ),
            )
            self.performance.refresh(state)
            logger.info(
                "Session %s started (seed %d, %d orders)",
                session.session_id,
                seed,
                generated.order_count,
            )

        self._mutate(apply)
        return self.snapshot()

    def tick(self, delta_ms: int) -> GameState:
        """Advance the clock by ``delta_ms`` real milliseconds.

        The delta is scaled by the session speed. Ticks received while
        paused only count towards ``paused_ms``.

        Raises:
            InvalidCommand: Negative delta, or the session has not been started
            SessionClosed: The session has completed
        """

        def apply(state: GameState) -> None:
            session = state.session
            self._require_active(state)
            if delta_ms < 0:
                raise InvalidCommand(f"Tick length must be non-negative, got {delta_ms}")
            scaled = self.scheduler.scale(delta_ms, session.settings.game_speed)
            session.tick_count += 1
            if session.status == SessionStatus.PAUSED:
                session.paused_ms += delta_ms
                return

            start_ms = session.elapsed_ms
            target = min(start_ms + scaled, session.duration_ms)
            self._run_until(state, target)

            if session.settings.enable_events:
                stream = seeds.stream(session.seed, "events", session.tick_count)
                for transition in self.disruptions.roll(state, target - start_ms, stream):
                    self._emit(state, transition)

            if session.elapsed_ms >= session.duration_ms:
                self._complete(state)
            self.performance.refresh(state)

        self._mutate(apply)
        return self.snapshot()

    # -------------------------------------------------------------------------
    # Commands (one decision each)
    # -------------------------------------------------------------------------

    def release_order(self, order_id: str) -> Decision:
        return self.apply(ReleaseOrder(order_id=order_id))

    def recall_order(self, order_id: str) -> Decision:
        return self.apply(RecallOrder(order_id=order_id))

    def pause(self) -> Decision:
        return self.apply(PauseSession())

    def resume(self) -> Decision:
        return self.apply(ResumeSession())

    def change_settings(self, **changes: Any) -> Decision:
        """Change mutable settings (game_speed, enable_events, manual_mode,
        overflow_policy, dispatch_policies)."""
        return self.apply(ChangeSettings(changes=changes))

    def hold_order(self, order_id: str) -> Decision:
        return self.apply(HoldOrder(order_id=order_id))

    def resume_order(self, order_id: str) -> Decision:
        return self.apply(ResumeOrder(order_id=order_id))

    def apply(self, command: Command) -> Decision:
        """Apply a command and journal it.

        Raises:
            SimulationError: The command does not apply; the failure is
                reported on the event stream first
        """

        def run(state: GameState) -> Decision:
            self._require_active(state)
            inverse = command.inverse(state)
            transition = self._apply_command(state, command)
            decision = self.journal.record(
                state, command, inverse, order_id=getattr(command, "order_id", None)
            )
            self._emit(state, transition, decision_id=decision.id)
            self.performance.refresh(state)
            return decision

        return self._mutate(run).model_copy(deep=True)

    def undo(self) -> Decision:
        """Reverse the most recent undoable decision.

        Raises:
            UndoUnavailable: Nothing to undo, or the inverse no longer applies
        """
        return self._reverse(DecisionType.UNDO)

    def redo(self) -> Decision:
        """Re-apply the most recently undone decision.

        Raises:
            UndoUnavailable: Nothing to redo, or the command no longer applies
        """
        return self._reverse(DecisionType.REDO)

    def _reverse(self, kind: DecisionType) -> Decision:
        def run(state: GameState) -> Decision:
            self._require_active(state)
            if kind == DecisionType.UNDO:
                target = self.journal.next_undo(state)
                command = target.inverse
                notice = EventType.DECISION_UNDONE
            else:
                target = self.journal.next_redo(state)
                command = target.command
                notice = EventType.DECISION_REDONE

            try:
                transition = self._apply_command(state, command)
            except UndoUnavailable:
                raise
            except SimulationError as e:
                verb = "undo" if kind == DecisionType.UNDO else "redo"
                raise UndoUnavailable(f"Cannot {verb} {target.id}: {e}") from e

            decision = self.journal.record_reversal(state, kind, target, command)
            self._emit(state, transition, decision_id=decision.id)
            self._emit(
                state,
                Transition(notice, decision.description, order_id=target.order_id),
                decision_id=decision.id,
            )
            self.performance.refresh(state)
            return decision

        return self._mutate(run).model_copy(deep=True)

    def _apply_command(self, state: GameState, command: Command) -> Transition:
        now = state.now_ms
        session = state.session

        if isinstance(command, ReleaseOrder):
            return self.flow.release(state, command.order_id, now)
        if isinstance(command, RecallOrder):
            return self.flow.recall(state, command.order_id)
        if isinstance(command, HoldOrder):
            return self.flow.hold(state, command.order_id)
        if isinstance(command, ResumeOrder):
            return self.flow.resume(state, command.order_id)
        if isinstance(command, PauseSession):
            if session.status != SessionStatus.RUNNING:
                raise InvalidCommand(f"Cannot pause a {session.status.value} session")
            session.status = SessionStatus.PAUSED
            return Transition(EventType.GAME_PAUSED, "Session paused", Severity.WARNING)
        if isinstance(command, ResumeSession):
            if session.status != SessionStatus.PAUSED:
                raise InvalidCommand(f"Cannot resume a {session.status.value} session")
            session.status = SessionStatus.RUNNING
            return Transition(EventType.GAME_RESUMED, "Session resumed")
        if isinstance(command, ChangeSettings):
            return self._change_settings(state, command.changes)
        raise InvalidCommand(f"Unsupported command {command!r}")

    def _change_settings(self, state: GameState, changes: dict[str, Any]) -> Transition:
        frozen = sorted(set(changes) - MUTABLE_SETTINGS)
        if frozen:
            raise InvalidCommand(f"Settings cannot change during a session: {', '.join(frozen)}")

        current = state.session.settings
        try:
            updated = GameSettings.model_validate({**current.model_dump(), **changes})
        except ValidationError as e:
            raise InvalidSettings(f"Invalid settings: {e.error_count()} error(s): {e}") from e
        state.session.settings = updated

        for department in state.departments:
            self.stations.set_policy(department, self._policy_for(department.id, updated))

        summary = ", ".join(f"{key}={value}" for key, value in sorted(changes.items()))
        return Transition(EventType.SETTINGS_CHANGED, f"Settings changed: {summary}")

    def _policy_for(self, department_id: int, settings: GameSettings) -> DispatchPolicy:
        if department_id in settings.dispatch_policies:
            return settings.dispatch_policies[department_id]
        dept = self.config.department_config(department_id)
        return dept.dispatch_policy if dept is not None else DispatchPolicy.FIFO

    # -------------------------------------------------------------------------
    # Operations outside the decision journal
    # -------------------------------------------------------------------------

    def fail_station(self, department_id: int, repair_minutes: Optional[float] = None) -> GameState:
        """Take a station down, for a fixed time or until ``repair_station``."""
        repair_ms = round(repair_minutes * MS_PER_MINUTE) if repair_minutes is not None else None

        def apply(state: GameState) -> None:
            self._require_active(state)
            self._emit(state, self.disruptions.fail_station(state, department_id, repair_ms))
            self.performance.refresh(state)

        self._mutate(apply)
        return self.snapshot()

    def repair_station(self, department_id: int) -> GameState:
        def apply(state: GameState) -> None:
            self._require_active(state)
            self._emit(state, self.disruptions.repair_station(state, department_id))
            self.performance.refresh(state)

        self._mutate(apply)
        return self.snapshot()

    def rework_order(self, order_id: str, to_step: int) -> GameState:
        """Send a waiting order back to an earlier step as a half-order."""

        def apply(state: GameState) -> None:
            self._require_active(state)
            self._emit(state, self.flow.rework(state, order_id, to_step, state.now_ms))
            self.performance.refresh(state)

        self._mutate(apply)
        return self.snapshot()

    # -------------------------------------------------------------------------
    # Clock
    # -------------------------------------------------------------------------

    def _run_until(self, state: GameState, target_ms: int) -> None:
        """Process due events in timestamp order up to ``target_ms``."""
        while True:
            self._settle(state)
            next_ms = self.scheduler.next_event_ms(state)
            if next_ms is None or next_ms > target_ms:
                break
            self._advance_to(state, next_ms)
        self._advance_to(state, target_ms)

    def _advance_to(self, state: GameState, time_ms: int) -> None:
        """Advance every station to ``time_ms``, then route what finished.

        All slots freed at this instant are vacated before any finished
        order asks the next station for admission.
        """
        step = time_ms - state.session.elapsed_ms
        state.session.elapsed_ms = time_ms
        finished = [
            (department, order)
            for department in state.departments
            for order in self.stations.advance(department, step, time_ms)
        ]
        for department, order in finished:
            for transition in self.flow.complete_step(state, department, order, time_ms):
                self._emit(state, transition)

    def _settle(self, state: GameState) -> None:
        """Apply everything due at the current time until nothing changes."""
        now = state.now_ms
        while True:
            transitions = self.disruptions.finish_repairs(state)

            for scheduled in self.scheduler.pop_due_releases(state, now):
                order = scheduled.order
                order.created_at_ms = scheduled.release_time_ms
                self.flow.add_pending(state, order)
                transitions.append(
                    Transition(
                        EventType.ORDER_GENERATED,
                        f"New order {order.id} from {order.customer_name} "
                        f"({order.priority.value}, {len(order.route)} steps)",
                        order_id=order.id,
                    )
                )

            if not state.session.settings.manual_mode:
                for order in list(state.pending_orders):
                    transition = self._auto_release(state, order, now)
                    if transition is not None:
                        transitions.append(transition)

            transitions.extend(self.flow.retry_blocked(state, now))

            for department in state.departments:
                for order in self.stations.dispatch(department, now):
                    transitions.append(
                        Transition(
                            EventType.ORDER_DISPATCHED,
                            f"Order {order.id} started at {department.name} "
                            f"({order.step_duration_ms / MS_PER_MINUTE:.2f} min)",
                            order_id=order.id,
                            department_id=department.id,
                        )
                    )

            if not transitions:
                return
            for transition in transitions:
                self._emit(state, transition)

    def _auto_release(self, state: GameState, order: Order, now: int) -> Optional[Transition]:
        try:
            return self.flow.release(state, order.id, now)
        except CapacityExceeded as e:
            if state.session.settings.overflow_policy == OverflowPolicy.REJECT:
                self._drop_pending(state, order.id)
                return self.flow.reject(state, order, str(e))
            return None
        except InvalidRoute as e:
            self._drop_pending(state, order.id)
            return self.flow.fail(state, order, e)

    @staticmethod
    def _drop_pending(state: GameState, order_id: str) -> None:
        state.pending_orders = [o for o in state.pending_orders if o.id != order_id]

    def _complete(self, state: GameState) -> None:
        session = state.session
        session.status = SessionStatus.COMPLETED
        performance = self.performance.compute_performance(state)
        state.performance = performance
        self._emit(
            state,
            Transition(
                EventType.GAME_COMPLETED,
                f"Session completed: {performance.orders_completed} orders delivered, "
                f"{performance.on_time_rate:.0f}% on time, score {state.score:,.0f}",
                Severity.SUCCESS,
            ),
        )
        logger.info(
            "Session %s completed with score %.0f",
            session.session_id,
            state.score,
        )

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    @staticmethod
    def _require_active(state: GameState) -> None:
        status = state.session.status
        if status == SessionStatus.COMPLETED:
            raise SessionClosed("Session is completed")
        if status == SessionStatus.SETUP:
            raise InvalidCommand("Session has not been started")

    def _emit(
        self,
        state: GameState,
        transition: Transition,
        decision_id: Optional[str] = None,
    ) -> GameEvent:
        snapshot = None
        if transition.event_type in KPI_EVENTS:
            state.performance = self.performance.compute_performance(state)
            snapshot = state.performance.model_copy(deep=True)
        return append_event(
            state,
            transition.event_type,
            transition.message,
            transition.severity,
            department_id=transition.department_id,
            order_id=transition.order_id,
            decision_id=decision_id,
            kpi_snapshot=snapshot,
            max_events=self.config.max_events,
        )

    def _mutate(self, apply: Callable[[GameState], T]) -> T:
        """Run ``apply`` on a working copy and commit it.

        On a ``SimulationError`` the working copy is discarded, the failure
        is recorded as a ``command_failed`` event and the error re-raised.
        Subscribers are notified after the commit, outside the lock.
        """
        failure: Optional[SimulationError] = None
        result = None
        with self._lock:
            working = self._state.model_copy(deep=True)
            mark = working.event_sequence
            try:
                result = apply(working)
            except SimulationError as e:
                failure = e
                working = self._state.model_copy(deep=True)
                mark = working.event_sequence
                append_event(
                    working,
                    EventType.COMMAND_FAILED,
                    str(e),
                    Severity.ERROR,
                    department_id=getattr(e, "department_id", None),
                    max_events=self.config.max_events,
                )
            self._state = working
            published = [e for e in working.events if e.sequence > mark]

        self.stream.publish(published)
        if failure is not None:
            raise failure
        return result


def run_session(
    settings: Optional[GameSettings] = None,
    config: Optional[EngineConfig] = None,
    tick_ms: int = 1000,
    session_id: Optional[str] = None,
    on_tick: Optional[Callable[[Simulation], None]] = None,
) -> GameState:
    """Run a session headless from start to completion.

    Args:
        settings: Session settings
        config: Engine configuration
        tick_ms: Real milliseconds per tick
        session_id: Session identifier (random if None)
        on_tick: Called after every tick, for progress output

    Returns:
        Final state
    """
    if tick_ms <= 0:
        raise ValueError(f"Tick length must be positive, got {tick_ms}")
    simulation = Simulation(settings, config, session_id)
    simulation.start()
    while simulation.status != SessionStatus.COMPLETED:
        simulation.tick(tick_ms)
        if on_tick is not None:
            on_tick(simulation)
    return simulation.snapshot()
