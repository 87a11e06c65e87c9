"""Tests for Pydantic data models."""

import pytest
from pydantic import ValidationError

from make2manage.engine.events import append_event
from make2manage.models import (
    Customer,
    CustomerTier,
    Decision,
    DecisionType,
    Department,
    GameSettings,
    GameState,
    Order,
    OrderStatus,
    RecallOrder,
    ReleaseOrder,
    StepTimestamp,
)
from make2manage.models.events import EventType


class TestOrder:
    """Tests for Order model."""

    def test_defaults(self) -> None:
        order = Order(id="ORD-001", route=[1, 2])

        assert order.status == OrderStatus.QUEUED
        assert order.current_step_index == 0
        assert order.processing_time_multiplier == 1.0
        assert not order.is_half_order
        assert order.current_department_id == 1

    def test_due_time_defaults_to_thirty_minutes_after_release(self) -> None:
        order = Order(id="ORD-001", route=[1], created_at_ms=120_000)
        assert order.due_at_ms == 120_000 + 30 * 60_000

    def test_due_minutes(self) -> None:
        order = Order(id="ORD-001", route=[1], due_minutes=12)
        assert order.due_at_ms == 720_000

    def test_empty_route_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Order(id="ORD-001", route=[])

    def test_unknown_status_rejected(self) -> None:
        """Status values form a closed set."""
        with pytest.raises(ValidationError):
            Order(id="ORD-001", route=[1], status="shipped")

    def test_station_duration_keys_from_json(self) -> None:
        order = Order.model_validate(
            {"id": "ORD-001", "route": [1, 2], "station_durations": {"2": 90_000}}
        )
        assert order.station_durations == {2: 90_000}
        assert order.base_duration_ms(2, 60_000) == 90_000
        assert order.base_duration_ms(1, 60_000) == 60_000

    def test_multiplier_bounds(self) -> None:
        with pytest.raises(ValidationError):
            Order(id="ORD-001", route=[1], processing_time_multiplier=1.5)
        with pytest.raises(ValidationError):
            Order(id="ORD-001", route=[1], processing_time_multiplier=0)

    def test_route_progress(self) -> None:
        order = Order(id="ORD-001", route=[5, 1, 3], current_step_index=1)

        assert order.remaining_route == [1, 3]
        assert not order.is_last_step
        order.current_step_index = 2
        assert order.is_last_step

    def test_step_index_must_point_into_route(self) -> None:
        Order(id="ORD-001", route=[5, 1], current_step_index=1)

        with pytest.raises(ValidationError, match="past the end"):
            Order(id="ORD-001", route=[5, 1], current_step_index=2)

    def test_terminal_statuses(self) -> None:
        assert OrderStatus.COMPLETED_LATE.is_terminal
        assert OrderStatus.COMPLETED_LATE.is_completed
        assert OrderStatus.ERROR.is_terminal
        assert not OrderStatus.ON_HOLD.is_terminal
        assert not OrderStatus.PROCESSING.is_completed

    def test_current_visit(self) -> None:
        order = Order(
            id="ORD-001",
            route=[1, 2],
            current_step_index=1,
            timestamps=[
                StepTimestamp(department_id=1, step_index=0, enqueued_at_ms=0, start_ms=0, end_ms=60_000),
                StepTimestamp(department_id=2, step_index=1, enqueued_at_ms=60_000),
            ],
        )
        assert order.current_visit().department_id == 2
        assert order.timestamps[0].cycle_ms == 60_000
        assert order.timestamps[1].cycle_ms is None


class TestDepartment:
    """Tests for Department model."""

    def test_wip_limit(self, make_order) -> None:
        dept = Department(
            id=1, name="Welding", capacity=2, max_queue_size=1, standard_processing_ms=60_000
        )
        assert dept.wip_limit == 3
        assert dept.free_slots == 2

        dept.queue = [make_order("A"), make_order("B")]
        dept.in_process = [make_order("C")]

        assert dept.wip_count == 3
        assert dept.is_full
        assert dept.wip_capacity_remaining == 0
        assert dept.find_order("C").id == "C"
        assert dept.find_order("D") is None

    def test_wip_count_serialized(self) -> None:
        dept = Department(id=1, name="Welding", standard_processing_ms=60_000)
        data = dept.model_dump()
        assert data["wip_count"] == 0
        assert data["average_cycle_time_ms"] == 0.0


class TestCustomer:
    """Tests for Customer model."""

    def test_new_customer_on_time_rate(self) -> None:
        assert Customer(id="C", name="New").on_time_rate == 100.0

    def test_record_delivery(self) -> None:
        customer = Customer(id="C", name="Acme", tier=CustomerTier.VIP, total_orders=3, on_time_orders=3)

        updated = customer.record_delivery(on_time=False)

        assert updated.total_orders == 4
        assert updated.late_orders == 1
        assert updated.on_time_rate == 75.0
        # Original untouched
        assert customer.total_orders == 3


class TestGameSettings:
    """Tests for GameSettings model."""

    def test_defaults(self) -> None:
        settings = GameSettings()
        assert settings.session_duration == 30
        assert settings.session_duration_ms == 1_800_000
        assert settings.game_speed == 1
        assert not settings.manual_mode

    def test_duration_must_be_supported(self) -> None:
        with pytest.raises(ValidationError):
            GameSettings(session_duration=45)

    def test_speed_must_be_supported(self) -> None:
        with pytest.raises(ValidationError):
            GameSettings(game_speed=3)

    def test_policy_keys_from_json(self) -> None:
        settings = GameSettings.model_validate({"dispatch_policies": {"2": "EDD"}})
        assert settings.dispatch_policies == {2: "EDD"}


class TestDecision:
    """Tests for Decision and command models."""

    def test_command_roundtrip_through_json(self) -> None:
        decision = Decision(
            id="DEC-0001",
            timestamp_ms=0,
            type=DecisionType.ORDER_RELEASE,
            description="Released",
            command=ReleaseOrder(order_id="A"),
            inverse=RecallOrder(order_id="A"),
        )

        restored = Decision.model_validate_json(decision.model_dump_json())

        assert isinstance(restored.command, ReleaseOrder)
        assert isinstance(restored.inverse, RecallOrder)
        assert restored.can_undo

    def test_reversal_cannot_be_undone(self) -> None:
        decision = Decision(
            id="DEC-0002", timestamp_ms=0, type=DecisionType.UNDO, description="Undid", reverses="DEC-0001"
        )
        assert decision.is_reversal
        assert not decision.can_undo


class TestGameState:
    """Tests for GameState lookups."""

    def test_locate_order(self, empty_state, make_order) -> None:
        empty_state.pending_orders.append(make_order("P"))
        empty_state.get_department(2).queue.append(make_order("Q", route=[2]))
        empty_state.completed_orders.append(make_order("C", status=OrderStatus.COMPLETED_ON_TIME))

        assert empty_state.locate_order("P").collection == "pending"
        location = empty_state.locate_order("Q")
        assert location.collection == "queue"
        assert location.department_id == 2
        assert empty_state.locate_order("C").collection == "completed"
        assert empty_state.locate_order("X") is None
        assert [o.id for o in empty_state.active_orders()] == ["P", "Q"]

    def test_without_journal(self, empty_state) -> None:
        append_event(empty_state, EventType.GAME_STARTED, "started")

        data = empty_state.without_journal()

        assert "events" not in data
        assert "decisions" not in data
        assert "event_sequence" not in data
        assert data["session"]["session_id"] == "test"

    def test_json_roundtrip(self, empty_state) -> None:
        restored = GameState.model_validate_json(empty_state.model_dump_json())
        assert restored.model_dump() == empty_state.model_dump()

    def test_out_of_range_step_rejected_on_load(self, empty_state) -> None:
        data = empty_state.model_dump(mode="json")
        data["scheduled_orders"] = [
            {
                "order": {"id": "A", "route": [1], "current_step_index": 4},
                "release_time_ms": 0,
            }
        ]

        with pytest.raises(ValidationError, match="current_step_index"):
            GameState.model_validate(data)
