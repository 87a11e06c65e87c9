"""Tests for routing and flow control."""

import pytest

from make2manage.engine.errors import (
    CapacityExceeded,
    InvalidCommand,
    InvalidRoute,
    OrderNotFound,
)
from make2manage.engine.routing import FlowController
from make2manage.models.events import EventType
from make2manage.models.orders import HalfOrderReason, OrderStatus
from make2manage.models.settings import OverflowPolicy


@pytest.fixture
def flow(config):
    return FlowController(config)


class TestRelease:
    """Tests for moving orders from the pending pool to the floor."""

    def test_release_enqueues_first_station(self, flow, empty_state, make_order):
        flow.add_pending(empty_state, make_order("A", route=[2, 3]))

        transition = flow.release(empty_state, "A", now_ms=0)

        assert transition.event_type == EventType.ORDER_RELEASED
        assert transition.department_id == 2
        assert empty_state.pending_orders == []
        assert [o.id for o in empty_state.get_department(2).queue] == ["A"]
        assert empty_state.enqueue_sequence == 1

    def test_release_unknown_order(self, flow, empty_state):
        with pytest.raises(OrderNotFound):
            flow.release(empty_state, "NOPE", now_ms=0)

    def test_release_to_unknown_station(self, flow, empty_state, make_order):
        flow.add_pending(empty_state, make_order("A", route=[9]))

        with pytest.raises(InvalidRoute) as exc_info:
            flow.release(empty_state, "A", now_ms=0)

        assert exc_info.value.department_id == 9
        # Still pending: nothing changed
        assert [o.id for o in empty_state.pending_orders] == ["A"]

    def test_release_to_full_station(self, flow, empty_state, make_order):
        welding = empty_state.get_department(1)
        welding.max_queue_size = 0
        flow.add_pending(empty_state, make_order("A"))
        flow.add_pending(empty_state, make_order("B"))
        flow.release(empty_state, "A", now_ms=0)

        with pytest.raises(CapacityExceeded):
            flow.release(empty_state, "B", now_ms=0)

    def test_pending_pool_in_release_order(self, flow, empty_state, make_order):
        flow.add_pending(empty_state, make_order("B", created_at_ms=60_000))
        flow.add_pending(empty_state, make_order("C", created_at_ms=0))
        flow.add_pending(empty_state, make_order("A", created_at_ms=60_000))

        assert [o.id for o in empty_state.pending_orders] == ["C", "A", "B"]

    def test_recall_restores_pending(self, flow, empty_state, make_order):
        flow.add_pending(empty_state, make_order("A"))
        flow.release(empty_state, "A", now_ms=0)

        transition = flow.recall(empty_state, "A")

        assert transition.event_type == EventType.ORDER_RECALLED
        assert [o.id for o in empty_state.pending_orders] == ["A"]
        assert empty_state.get_department(1).queue == []

    def test_recall_only_from_first_station(self, flow, empty_state, make_order):
        order = make_order("A", route=[1, 2], current_step_index=1)
        flow.enqueue_current_step(empty_state, order, now_ms=0)

        with pytest.raises(OrderNotFound):
            flow.recall(empty_state, "A")


class TestStepCompletion:
    """Tests for routing after a step finishes."""

    def test_advance_to_next_station(self, flow, empty_state, make_order):
        welding = empty_state.get_department(1)
        order = make_order("A", route=[1, 2])

        transitions = flow.complete_step(empty_state, welding, order, now_ms=60_000)

        assert [t.event_type for t in transitions] == [EventType.ORDER_ADVANCED]
        assert order.current_step_index == 1
        assert [o.id for o in empty_state.get_department(2).queue] == ["A"]

    def test_completion_on_time(self, flow, empty_state, make_order):
        order = make_order("A", customer_id="CUST-001", value=1000.0, due_minutes=5)

        transition = flow.finalize(empty_state, order, now_ms=5 * 60_000)

        assert transition.event_type == EventType.ORDER_COMPLETED
        assert order.status == OrderStatus.COMPLETED_ON_TIME
        assert order.completed_at_ms == 300_000
        assert empty_state.score == 1000.0
        customer = empty_state.get_customer("CUST-001")
        assert customer.total_orders == 46
        assert customer.on_time_orders == 43

    def test_late_completion_earns_half(self, flow, empty_state, make_order):
        order = make_order("A", customer_id="CUST-001", value=1000.0, due_minutes=5)

        transition = flow.finalize(empty_state, order, now_ms=5 * 60_000 + 1)

        assert transition.event_type == EventType.ORDER_LATE
        assert order.status == OrderStatus.COMPLETED_LATE
        assert empty_state.score == 500.0
        assert empty_state.get_customer("CUST-001").late_orders == 1

    def test_unknown_next_station_fails_order(self, flow, empty_state, make_order):
        welding = empty_state.get_department(1)
        order = make_order("A", route=[1, 9])

        transitions = flow.complete_step(empty_state, welding, order, now_ms=0)

        assert transitions[0].event_type == EventType.ORDER_ERROR
        assert order.status == OrderStatus.ERROR
        assert [o.id for o in empty_state.failed_orders] == ["A"]

    def test_full_next_station_blocks(self, flow, empty_state, make_order):
        welding = empty_state.get_department(1)
        machining = empty_state.get_department(2)
        machining.max_queue_size = 0
        flow.enqueue_current_step(empty_state, make_order("X", route=[2]), now_ms=0)
        order = make_order("A", route=[1, 2])

        transitions = flow.complete_step(empty_state, welding, order, now_ms=0)

        assert transitions[0].event_type == EventType.ORDER_BLOCKED
        assert order.blocked
        assert order.current_step_index == 0
        assert welding.in_process == [order]

        # Room frees up
        machining.queue = []
        retried = flow.retry_blocked(empty_state, now_ms=10_000)

        assert [t.event_type for t in retried] == [EventType.ORDER_ADVANCED]
        assert not order.blocked
        assert welding.in_process == []
        assert order.current_step_index == 1

    def test_full_next_station_rejects(self, flow, empty_state, make_order):
        empty_state.session.settings = empty_state.session.settings.model_copy(
            update={"overflow_policy": OverflowPolicy.REJECT}
        )
        empty_state.get_department(2).max_queue_size = 0
        flow.enqueue_current_step(empty_state, make_order("X", route=[2]), now_ms=0)
        order = make_order("A", route=[1, 2])

        transitions = flow.complete_step(empty_state, empty_state.get_department(1), order, 0)

        assert transitions[0].event_type == EventType.ORDER_REJECTED
        assert order.status == OrderStatus.REJECTED
        assert [o.id for o in empty_state.rejected_orders] == ["A"]


class TestManualIntervention:
    """Tests for hold, resume and rework."""

    def test_hold_and_resume(self, flow, empty_state, make_order):
        flow.enqueue_current_step(empty_state, make_order("A"), now_ms=0)

        flow.hold(empty_state, "A")
        order = empty_state.find_order("A")
        assert order.status == OrderStatus.ON_HOLD
        assert order.held_from == OrderStatus.QUEUED

        flow.resume(empty_state, "A")
        assert order.status == OrderStatus.QUEUED
        assert order.held_from is None

    def test_hold_pending_order(self, flow, empty_state, make_order):
        flow.add_pending(empty_state, make_order("A"))

        with pytest.raises(InvalidCommand):
            flow.hold(empty_state, "A")
        with pytest.raises(OrderNotFound):
            flow.hold(empty_state, "NOPE")

    def test_resume_requires_hold(self, flow, empty_state, make_order):
        flow.enqueue_current_step(empty_state, make_order("A"), now_ms=0)

        with pytest.raises(InvalidCommand):
            flow.resume(empty_state, "A")

    def test_rework_sends_order_back(self, flow, empty_state, make_order):
        order = make_order("A", route=[1, 2, 3], current_step_index=2)
        flow.enqueue_current_step(empty_state, order, now_ms=0)

        transition = flow.rework(empty_state, "A", to_step=0, now_ms=60_000)

        assert transition.event_type == EventType.ORDER_REWORKED
        assert transition.department_id == 1
        assert order.current_step_index == 0
        assert order.rework_count == 1
        assert order.half_order_reason == HalfOrderReason.REWORK
        assert order.processing_time_multiplier == 0.5
        assert empty_state.get_department(3).queue == []
        assert [o.id for o in empty_state.get_department(1).queue] == ["A"]

    def test_rework_must_go_backwards(self, flow, empty_state, make_order):
        order = make_order("A", route=[1, 2], current_step_index=1)
        flow.enqueue_current_step(empty_state, order, now_ms=0)

        with pytest.raises(InvalidCommand):
            flow.rework(empty_state, "A", to_step=1, now_ms=0)
