"""
Pytest configuration and fixtures for make2manage tests.
"""

import pytest

from make2manage.config.schema import DepartmentConfig, EngineConfig, get_default_config
from make2manage.engine.simulation import Simulation, build_departments
from make2manage.models.game import GameSession, GameState
from make2manage.models.orders import MS_PER_MINUTE, Order, ScheduledOrder
from make2manage.models.settings import GameSettings


@pytest.fixture
def config() -> EngineConfig:
    """Default engine configuration."""
    return get_default_config()


@pytest.fixture
def tight_config() -> EngineConfig:
    """Two one-minute stations that admit a single order each."""
    return EngineConfig(
        departments=[
            DepartmentConfig(id=1, name="Welding", standard_minutes=1, max_queue_size=0),
            DepartmentConfig(id=2, name="Machining", standard_minutes=1, max_queue_size=0),
        ]
    )


@pytest.fixture
def make_order():
    """Factory for orders with sensible defaults."""

    def _make(order_id: str = "ORD-001", route=(1,), **kwargs) -> Order:
        return Order(id=order_id, route=list(route), **kwargs)

    return _make


@pytest.fixture
def empty_state(config: EngineConfig) -> GameState:
    """A state in setup on the default shop floor."""
    settings = GameSettings()
    return GameState(
        session=GameSession(session_id="test", settings=settings),
        departments=build_departments(config, settings),
        customers=[c.model_copy(deep=True) for c in config.customers],
    )


@pytest.fixture
def make_simulation():
    """Factory for predetermined sessions.

    ``orders`` is a list of ``(release_minutes, Order)`` pairs.
    """

    def _make(orders, config: EngineConfig = None, session_id: str = "test-session", **settings):
        schedule = [
            ScheduledOrder(order=order, release_time_ms=round(minutes * MS_PER_MINUTE))
            for minutes, order in orders
        ]
        settings.setdefault("random_seed", 7)
        game_settings = GameSettings(
            use_predetermined_orders=True,
            predetermined_schedule=schedule,
            **settings,
        )
        return Simulation(game_settings, config, session_id=session_id)

    return _make
