"""
Tests for the simulation engine.

Tests cover:
- Session lifecycle (start, tick, pause, completion)
- Processing, blocking and routing over time
- Commands, undo and redo
- Failed commands leaving state untouched
- Determinism and resuming from a saved state
"""

import pytest

from make2manage.engine.errors import (
    EmptySchedule,
    InvalidCommand,
    InvalidSettings,
    OrderNotFound,
    SessionClosed,
    UndoUnavailable,
)
from make2manage.engine.simulation import Simulation, run_session
from make2manage.models.departments import DispatchPolicy
from make2manage.models.events import EventType
from make2manage.models.game import SessionStatus
from make2manage.models.orders import HalfOrderReason, OrderStatus
from make2manage.models.settings import GameSettings, OverflowPolicy

MINUTE = 60_000


class TestLifecycle:
    """Tests for starting, ticking and finishing a session."""

    def test_start_generates_order_book(self):
        simulation = Simulation(GameSettings(random_seed=42), session_id="abc")

        state = simulation.start()

        assert state.session.status == SessionStatus.RUNNING
        assert state.session.seed == 42
        assert state.scheduled_orders
        assert state.events[0].type == EventType.GAME_STARTED

    def test_start_twice(self):
        simulation = Simulation(GameSettings(random_seed=1))
        simulation.start()

        with pytest.raises(InvalidCommand):
            simulation.start()

    def test_start_without_schedule(self):
        simulation = Simulation(GameSettings(use_predetermined_orders=True))

        with pytest.raises(EmptySchedule):
            simulation.start()
        assert simulation.status == SessionStatus.SETUP

    def test_tick_before_start(self):
        with pytest.raises(InvalidCommand):
            Simulation(GameSettings(random_seed=1)).tick(1000)

    def test_negative_tick(self):
        simulation = Simulation(GameSettings(random_seed=1))
        simulation.start()

        with pytest.raises(InvalidCommand, match="non-negative"):
            simulation.tick(-1)

        state = simulation.snapshot()
        assert state.events[-1].type == EventType.COMMAND_FAILED
        assert state.session.tick_count == 0

    def test_game_speed_scales_ticks(self, make_simulation, make_order):
        simulation = make_simulation([(0, make_order("A"))], game_speed=4)
        simulation.start()

        state = simulation.tick(1000)

        assert state.session.elapsed_ms == 4000
        assert state.session.tick_count == 1

    def test_session_completes(self, make_simulation, make_order):
        simulation = make_simulation([(0, make_order("A"))], session_duration=15)
        simulation.start()

        state = simulation.tick(20 * MINUTE)

        assert state.session.status == SessionStatus.COMPLETED
        assert state.session.elapsed_ms == 15 * MINUTE
        assert state.events[-1].type == EventType.GAME_COMPLETED
        with pytest.raises(SessionClosed):
            simulation.tick(1000)
        with pytest.raises(SessionClosed):
            simulation.pause()

    def test_pause_stops_the_clock(self, make_simulation, make_order):
        order = make_order("A", station_durations={1: 900_000})
        simulation = make_simulation([(0, order)])
        simulation.start()

        simulation.tick(300_000)
        simulation.pause()
        paused = simulation.tick(180_000)
        simulation.resume()
        state = simulation.tick(600_000)

        assert paused.session.elapsed_ms == 300_000
        assert state.session.paused_ms == 180_000
        assert state.completed_orders[0].completed_at_ms == 900_000

    def test_pause_and_resume_only_in_right_state(self, make_simulation, make_order):
        simulation = make_simulation([(0, make_order("A"))])
        simulation.start()

        with pytest.raises(InvalidCommand):
            simulation.resume()
        simulation.pause()
        with pytest.raises(InvalidCommand):
            simulation.pause()


class TestProcessing:
    """Tests for orders flowing through stations over time."""

    def test_half_order_takes_half_the_time(self, make_simulation, make_order):
        order = make_order(
            "A",
            station_durations={1: 1_200_000},
            processing_time_multiplier=0.5,
            half_order_reason=HalfOrderReason.PARTIAL_WORK,
        )
        simulation = make_simulation([(0, order)])
        simulation.start()

        state = simulation.tick(600_000)

        assert state.completed_orders[0].completed_at_ms == 600_000
        assert state.completed_orders[0].status == OrderStatus.COMPLETED_ON_TIME

    def test_completion_event_carries_kpis(self, make_simulation, make_order):
        simulation = make_simulation([(0, make_order("A"))])
        simulation.start()

        simulation.tick(10 * MINUTE)

        completed = [e for e in simulation.events() if e.type == EventType.ORDER_COMPLETED]
        assert completed[0].order_id == "A"
        assert completed[0].kpi_snapshot.orders_completed == 1

    def test_late_order_earns_half(self, make_simulation, make_order):
        order = make_order("A", value=800.0, due_minutes=2, station_durations={1: 3 * MINUTE})
        simulation = make_simulation([(0, order)])
        simulation.start()

        state = simulation.tick(5 * MINUTE)

        assert state.completed_orders[0].status == OrderStatus.COMPLETED_LATE
        assert state.score == 400.0
        assert state.performance.orders_late == 1

    def test_full_station_blocks_upstream(self, make_simulation, make_order, tight_config):
        a = make_order("A", route=[1, 2], station_durations={1: MINUTE, 2: 10 * MINUTE})
        b = make_order("B", route=[1, 2], station_durations={1: MINUTE})
        simulation = make_simulation([(0, a), (0, b)], config=tight_config)
        simulation.start()

        state = simulation.tick(3 * MINUTE)

        welding = state.get_department(1)
        assert [o.id for o in welding.in_process] == ["B"]
        assert welding.in_process[0].blocked
        assert any(e.type == EventType.ORDER_BLOCKED for e in state.events)

        # A leaves Machining at 11 minutes and B moves up
        state = simulation.tick(500_000)

        assert state.locate_order("B").department_id == 2
        assert state.get_department(1).in_process == []

    def test_full_station_rejects(self, make_simulation, make_order, tight_config):
        a = make_order("A", route=[1, 2])
        b = make_order("B", route=[1, 2])
        simulation = make_simulation(
            [(0, a), (0, b)], config=tight_config, overflow_policy=OverflowPolicy.REJECT
        )
        simulation.start()

        state = simulation.tick(0)

        assert [o.id for o in state.rejected_orders] == ["B"]
        assert state.performance.orders_rejected == 1

    @pytest.mark.parametrize("policy", [OverflowPolicy.BLOCK, OverflowPolicy.REJECT])
    def test_slot_freed_at_same_instant_admits(
        self, make_simulation, make_order, tight_config, policy
    ):
        # A leaves Machining at the moment B finishes Welding and needs Machining
        a = make_order("A", route=[2], station_durations={2: 3 * MINUTE})
        b = make_order("B", route=[1, 2], station_durations={1: 3 * MINUTE})
        simulation = make_simulation([(0, a), (0, b)], config=tight_config, overflow_policy=policy)
        simulation.start()

        state = simulation.tick(5 * MINUTE)

        assert state.rejected_orders == []
        assert [o.id for o in state.completed_orders] == ["A", "B"]
        assert state.completed_orders[1].completed_at_ms == 4 * MINUTE
        assert not any(e.type == EventType.ORDER_BLOCKED for e in state.events)

    def test_unknown_station_fails_order(self, make_simulation, make_order):
        simulation = make_simulation([(0, make_order("A", route=[9]))])
        simulation.start()

        state = simulation.tick(0)

        assert [o.id for o in state.failed_orders] == ["A"]
        assert state.failed_orders[0].status == OrderStatus.ERROR

    def test_hold_freezes_processing(self, make_simulation, make_order):
        simulation = make_simulation([(0, make_order("A", station_durations={1: 10 * MINUTE}))])
        simulation.start()
        simulation.tick(MINUTE)

        simulation.hold_order("A")
        held = simulation.tick(2 * MINUTE)
        simulation.resume_order("A")
        state = simulation.tick(20 * MINUTE)

        assert held.find_order("A").remaining_ms == 9 * MINUTE
        assert state.completed_orders[0].completed_at_ms == 12 * MINUTE

    def test_station_failure_delays_work(self, make_simulation, make_order):
        simulation = make_simulation([(0, make_order("A", station_durations={1: 5 * MINUTE}))])
        simulation.start()
        simulation.tick(MINUTE)

        simulation.fail_station(1, repair_minutes=2)
        state = simulation.tick(5 * MINUTE)

        assert state.find_order("A").remaining_ms == MINUTE
        assert any(e.type == EventType.EQUIPMENT_REPAIRED for e in state.events)

        state = simulation.tick(MINUTE)
        assert state.completed_orders[0].completed_at_ms == 7 * MINUTE

    def test_rework_sends_order_back(self, make_simulation, make_order):
        durations = {1: MINUTE, 2: 10 * MINUTE}
        a = make_order("A", route=[1, 2], station_durations=durations)
        b = make_order("B", route=[1, 2], station_durations=durations)
        simulation = make_simulation([(0, a), (0, b)])
        simulation.start()
        simulation.tick(3 * MINUTE)

        state = simulation.rework_order("B", 0)

        order = state.find_order("B")
        assert state.locate_order("B").department_id == 1
        assert order.current_step_index == 0
        assert order.rework_count == 1
        assert state.events[-1].type == EventType.ORDER_REWORKED

    def test_invariants_hold_every_tick(self):
        settings = GameSettings(
            random_seed=123, session_duration=15, enable_events=True, order_generation_rate="high"
        )
        simulation = Simulation(settings, session_id="inv")
        simulation.start()
        step_seen = {}

        while simulation.status != SessionStatus.COMPLETED:
            state = simulation.tick(15_000)
            for order in state.all_orders():
                assert order.current_step_index < len(order.route)
                # Without rework, progress along a route only moves forward
                assert order.current_step_index >= step_seen.get(order.id, 0)
                step_seen[order.id] = order.current_step_index
            for dept in state.departments:
                assert dept.wip_count <= dept.wip_limit
                assert len(dept.in_process) <= dept.capacity
                assert 0.0 <= dept.utilization <= 100.0
            ids = [o.id for o in state.all_orders()]
            assert len(ids) == len(set(ids))

        assert state.events[-1].type == EventType.GAME_COMPLETED


class TestCommands:
    """Tests for player commands, undo and redo."""

    @pytest.fixture
    def manual(self, make_simulation, make_order):
        simulation = make_simulation([(0, make_order("A")), (0, make_order("B"))], manual_mode=True)
        simulation.start()
        simulation.tick(0)
        return simulation

    def test_commands_do_not_dispatch(self, manual):
        decision = manual.release_order("A")

        state = manual.snapshot()
        assert decision.id == "DEC-0001"
        assert [o.id for o in state.get_department(1).queue] == ["A"]
        assert state.get_department(1).in_process == []

        state = manual.tick(0)
        assert [o.id for o in state.get_department(1).in_process] == ["A"]

    def test_manual_mode_waits_for_release(self, manual):
        state = manual.tick(5 * MINUTE)

        assert [o.id for o in state.pending_orders] == ["A", "B"]

    def test_undo_and_redo_release(self, manual):
        manual.release_order("A")
        manual.release_order("B")
        released = manual.snapshot().without_journal()

        undo = manual.undo()
        state = manual.snapshot()
        assert undo.reverses == "DEC-0002"
        assert [o.id for o in state.pending_orders] == ["B"]

        manual.redo()

        assert manual.snapshot().without_journal() == released
        assert [d.type.value for d in manual.decisions()] == [
            "order_release",
            "order_release",
            "undo",
            "redo",
        ]

    def test_nothing_to_undo(self, manual):
        with pytest.raises(UndoUnavailable):
            manual.undo()
        with pytest.raises(UndoUnavailable):
            manual.redo()

    def test_failed_command_changes_nothing(self, manual):
        before = manual.snapshot().without_journal()

        with pytest.raises(OrderNotFound):
            manual.release_order("NOPE")

        after = manual.snapshot()
        assert after.without_journal() == before
        assert after.events[-1].type == EventType.COMMAND_FAILED
        assert after.decisions == []

    def test_change_settings(self, manual):
        manual.change_settings(game_speed=2, dispatch_policies={1: "EDD"})

        state = manual.snapshot()
        assert state.session.settings.game_speed == 2
        assert state.get_department(1).dispatch_policy == DispatchPolicy.EDD

        manual.undo()

        state = manual.snapshot()
        assert state.session.settings.game_speed == 1
        assert state.get_department(1).dispatch_policy == DispatchPolicy.FIFO

    def test_invalid_settings(self, manual):
        with pytest.raises(InvalidSettings):
            manual.change_settings(game_speed=3)
        with pytest.raises(InvalidCommand):
            manual.change_settings(session_duration=60)

    def test_subscribers_see_committed_state(self, manual):
        seen = []

        def on_event(event):
            seen.append((event.type, manual.snapshot().locate_order("A").collection))

        manual.subscribe(on_event)
        manual.release_order("A")

        assert seen == [(EventType.ORDER_RELEASED, "queue")]

    def test_events_since(self, manual):
        last = manual.events()[-1].sequence
        manual.release_order("A")

        newer = manual.events(since=last)

        assert [e.type for e in newer] == [EventType.ORDER_RELEASED]
        assert newer[0].decision_id == "DEC-0001"


class TestDeterminism:
    """Same seed and tick sequence give the same session."""

    SETTINGS = GameSettings(random_seed=42, session_duration=15, enable_events=True)

    def test_same_seed_same_session(self):
        first = run_session(self.SETTINGS, tick_ms=5000, session_id="det")
        second = run_session(self.SETTINGS, tick_ms=5000, session_id="det")

        assert first.model_dump_json() == second.model_dump_json()
        assert first.session.status == SessionStatus.COMPLETED

    def test_resume_from_state(self):
        original = Simulation(self.SETTINGS, session_id="det")
        original.start()
        for _ in range(20):
            original.tick(5000)

        resumed = Simulation.from_state(original.snapshot())
        for _ in range(20):
            original.tick(5000)
            resumed.tick(5000)

        assert resumed.snapshot().model_dump_json() == original.snapshot().model_dump_json()

    def test_run_session_rejects_bad_tick(self):
        with pytest.raises(ValueError):
            run_session(self.SETTINGS, tick_ms=0)
