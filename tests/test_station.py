"""
Tests for department stations and dispatch policies.

Tests cover:
- Admission against the WIP limit
- FIFO, EDD and SPT dispatch order
- Effective processing time
- Time advance, busy time and utilization
- Maintenance freezing a station
"""

import pytest

from make2manage.engine.dispatch import analyze_policy_switch, select_next, sort_queue
from make2manage.engine.errors import CapacityExceeded, OrderNotFound
from make2manage.engine.station import StationEngine
from make2manage.models.departments import Department, DepartmentStatus, DispatchPolicy
from make2manage.models.orders import OrderStatus


@pytest.fixture
def stations():
    return StationEngine()


@pytest.fixture
def welding():
    return Department(
        id=1, name="Welding", capacity=1, max_queue_size=2, standard_processing_ms=60_000
    )


class TestAdmission:
    """Tests for StationEngine.enqueue."""

    def test_enqueue_records_visit(self, stations, welding, make_order):
        order = make_order("A")

        stations.enqueue(welding, order, now_ms=5_000, sequence=1)

        assert [o.id for o in welding.queue] == ["A"]
        assert order.status == OrderStatus.QUEUED
        assert order.enqueue_seq == 1
        visit = order.current_visit()
        assert visit.department_id == 1
        assert visit.enqueued_at_ms == 5_000
        assert visit.start_ms is None

    def test_fourth_order_exceeds_capacity(self, stations, welding, make_order):
        """Capacity 1 plus a queue of 2 admits exactly three orders."""
        for seq, order_id in enumerate(["A", "B", "C"], start=1):
            stations.enqueue(welding, make_order(order_id), now_ms=0, sequence=seq)

        assert welding.status == DepartmentStatus.OVERLOADED
        with pytest.raises(CapacityExceeded) as exc_info:
            stations.enqueue(welding, make_order("D"), now_ms=0, sequence=4)

        assert exc_info.value.department_id == 1
        assert welding.wip_count == 3

    def test_restore_keeps_queue_position(self, stations, welding, make_order):
        first = make_order("A")
        stations.enqueue(welding, first, now_ms=0, sequence=1)
        stations.enqueue(welding, make_order("B"), now_ms=0, sequence=2)

        stations.remove_queued(welding, "A", keep_visit=True)
        stations.enqueue(welding, first, now_ms=30_000, sequence=3, restore=True)

        assert [o.id for o in welding.queue] == ["A", "B"]
        assert first.enqueue_seq == 1
        assert len(first.timestamps) == 1

    def test_remove_queued_drops_unstarted_visit(self, stations, welding, make_order):
        order = make_order("A")
        stations.enqueue(welding, order, now_ms=0, sequence=1)

        stations.remove_queued(welding, "A")

        assert order.timestamps == []
        with pytest.raises(OrderNotFound):
            stations.remove_queued(welding, "A")


class TestDispatchPolicies:
    """Tests for queue ordering by policy."""

    def test_fifo_dispatches_first_arrival(self, stations, welding, make_order):
        stations.enqueue(welding, make_order("A", due_minutes=20), now_ms=0, sequence=1)
        stations.enqueue(welding, make_order("B", due_minutes=5), now_ms=0, sequence=2)

        started = stations.dispatch(welding, now_ms=0)

        assert [o.id for o in started] == ["A"]

    def test_edd_dispatches_earliest_due(self, stations, welding, make_order):
        """The order due at T+5 starts ahead of the one due at T+20."""
        welding.dispatch_policy = DispatchPolicy.EDD
        stations.enqueue(welding, make_order("A", due_minutes=20), now_ms=0, sequence=1)
        stations.enqueue(welding, make_order("B", due_minutes=5), now_ms=0, sequence=2)

        started = stations.dispatch(welding, now_ms=0)

        assert [o.id for o in started] == ["B"]
        assert started[0].status == OrderStatus.PROCESSING
        assert started[0].current_visit().start_ms == 0

    def test_edd_ties_break_by_arrival(self, welding, make_order):
        welding.dispatch_policy = DispatchPolicy.EDD
        a = make_order("A", due_minutes=10, enqueue_seq=2)
        b = make_order("B", due_minutes=10, enqueue_seq=1)

        assert [o.id for o in sort_queue([a, b], welding)] == ["B", "A"]

    def test_spt_dispatches_shortest_base_duration(self, stations, welding, make_order):
        welding.dispatch_policy = DispatchPolicy.SPT
        stations.enqueue(welding, make_order("LONG", station_durations={1: 120_000}), 0, 1)
        stations.enqueue(welding, make_order("SHORT", station_durations={1: 30_000}), 0, 2)
        stations.enqueue(welding, make_order("STD"), 0, 3)

        assert [o.id for o in welding.queue] == ["SHORT", "STD", "LONG"]

    def test_held_orders_are_skipped(self, stations, welding, make_order):
        stations.enqueue(welding, make_order("A"), 0, 1)
        stations.enqueue(welding, make_order("B"), 0, 2)
        welding.queue[0].status = OrderStatus.ON_HOLD

        assert select_next(welding).id == "B"

    def test_set_policy_resorts_queue(self, stations, welding, make_order):
        stations.enqueue(welding, make_order("A", due_minutes=20), 0, 1)
        stations.enqueue(welding, make_order("B", due_minutes=5), 0, 2)

        stations.set_policy(welding, DispatchPolicy.EDD)

        assert welding.dispatch_policy == DispatchPolicy.EDD
        assert [o.id for o in welding.queue] == ["B", "A"]

    def test_policy_switch_analysis(self, stations, welding, make_order):
        stations.enqueue(welding, make_order("A", due_minutes=20), 0, 1)
        stations.enqueue(welding, make_order("B", due_minutes=5), 0, 2)

        analysis = analyze_policy_switch(welding, DispatchPolicy.EDD)

        assert analysis.reordering_required
        assert analysis.orders_affected == 2
        assert analysis.estimated_impact == "Major reordering"

        same = analyze_policy_switch(welding, DispatchPolicy.FIFO)
        assert not same.reordering_required


class TestProcessing:
    """Tests for processing time, advance and utilization."""

    def test_effective_duration(self, stations, welding, make_order):
        """base x multiplier / efficiency / equipment condition."""
        welding.efficiency = 1.25
        welding.equipment_condition = 0.8
        order = make_order("A", processing_time_multiplier=0.5)

        assert stations.effective_duration_ms(welding, order) == 30_000

    def test_advance_completes_step(self, stations, welding, make_order):
        order = make_order("A")
        stations.enqueue(welding, order, 0, 1)
        stations.dispatch(welding, 0)

        assert stations.advance(welding, 30_000, 30_000) == []
        assert order.remaining_ms == 30_000
        assert welding.busy_ms == 30_000
        assert welding.utilization == 100.0

        finished = stations.advance(welding, 30_000, 60_000)

        assert [o.id for o in finished] == ["A"]
        assert welding.in_process == []
        assert welding.total_processed == 1
        assert welding.total_cycle_ms == 60_000
        assert order.current_visit() is None
        assert order.timestamps[0].end_ms == 60_000

    def test_utilization_counts_idle_time(self, stations, welding, make_order):
        order = make_order("A")
        stations.enqueue(welding, order, 0, 1)
        stations.dispatch(welding, 0)
        stations.advance(welding, 60_000, 60_000)

        stations.advance(welding, 60_000, 120_000)

        assert welding.busy_ms == 60_000
        assert welding.utilization == 50.0

    def test_time_to_next_completion(self, stations, welding, make_order):
        assert stations.time_to_next_completion(welding) is None
        stations.enqueue(welding, make_order("A"), 0, 1)
        stations.dispatch(welding, 0)

        assert stations.time_to_next_completion(welding) == 60_000


class TestMaintenance:
    """Tests for stations under maintenance."""

    def test_maintenance_freezes_progress(self, stations, welding, make_order):
        order = make_order("A")
        stations.enqueue(welding, order, 0, 1)
        stations.dispatch(welding, 0)
        stations.advance(welding, 20_000, 20_000)

        stations.start_maintenance(welding, until_ms=None)
        stations.advance(welding, 30_000, 50_000)

        assert order.remaining_ms == 40_000
        assert welding.busy_ms == 20_000
        assert welding.status == DepartmentStatus.MAINTENANCE
        assert stations.time_to_next_completion(welding) is None

        stations.end_maintenance(welding)
        finished = stations.advance(welding, 40_000, 90_000)

        assert [o.id for o in finished] == ["A"]
        assert welding.status == DepartmentStatus.AVAILABLE

    def test_no_dispatch_during_maintenance(self, stations, welding, make_order):
        stations.enqueue(welding, make_order("A"), 0, 1)
        stations.start_maintenance(welding, until_ms=60_000)

        assert stations.dispatch(welding, 0) == []
        assert welding.maintenance_until_ms == 60_000
