"""
make2manage simulation engine.

This module contains the core simulation logic:
- Simulated clock and event scheduling
- Department stations and dispatch policies
- Routing and flow control between stations
- Order generation from a seed or an authored schedule
- Random shop-floor events
- Performance metrics and the delivery forecast
- Decision journal and event stream
- Main simulation loop
"""

from make2manage.engine.clock import SPEED_MULTIPLIERS, Scheduler
from make2manage.engine.dispatch import (
    POLICY_DESCRIPTIONS,
    POLICY_INSIGHTS,
    PolicyInsights,
    PolicySwitchAnalysis,
    analyze_policy_switch,
    sort_queue,
)
from make2manage.engine.disruptions import DisruptionEngine
from make2manage.engine.errors import (
    CapacityExceeded,
    EmptySchedule,
    InvalidCommand,
    InvalidRoute,
    InvalidSeed,
    InvalidSettings,
    OrderNotFound,
    SessionClosed,
    SimulationError,
    UndoUnavailable,
)
from make2manage.engine.events import EventStream, append_event
from make2manage.engine.generator import GenerationResult, OrderGenerator
from make2manage.engine.journal import DecisionLog
from make2manage.engine.performance import PerformanceEngine
from make2manage.engine.routing import FlowController, Transition
from make2manage.engine.simulation import Simulation, build_departments, run_session
from make2manage.engine.station import StationEngine
from make2manage.engine.validation import (
    ValidationError,
    ValidationResult,
    validate_schedule,
    validate_settings,
)

__all__ = [
    # Clock
    "SPEED_MULTIPLIERS",
    "Scheduler",
    # Stations
    "StationEngine",
    "POLICY_DESCRIPTIONS",
    "POLICY_INSIGHTS",
    "PolicyInsights",
    "PolicySwitchAnalysis",
    "analyze_policy_switch",
    "sort_queue",
    # Routing
    "FlowController",
    "Transition",
    # Generation and events
    "GenerationResult",
    "OrderGenerator",
    "DisruptionEngine",
    # Metrics
    "PerformanceEngine",
    # Journal
    "DecisionLog",
    "EventStream",
    "append_event",
    # Simulation
    "Simulation",
    "build_departments",
    "run_session",
    # Validation
    "ValidationError",
    "ValidationResult",
    "validate_schedule",
    "validate_settings",
    # Errors
    "SimulationError",
    "CapacityExceeded",
    "EmptySchedule",
    "InvalidCommand",
    "InvalidRoute",
    "InvalidSeed",
    "InvalidSettings",
    "OrderNotFound",
    "SessionClosed",
    "UndoUnavailable",
]
