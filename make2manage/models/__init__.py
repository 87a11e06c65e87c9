"""
Data models for the make2manage simulation.

This module contains Pydantic models for:
- Orders and scheduled releases
- Department stations
- Customers
- Session settings
- Commands and the decision journal
- Events, performance and forecasts
- The root game state
"""

from make2manage.models.customers import Customer, CustomerTier
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
from make2manage.models.departments import Department, DepartmentStatus, DispatchPolicy
from make2manage.models.events import EventType, GameEvent, Severity
from make2manage.models.game import GameSession, GameState, OrderLocation, SessionStatus
from make2manage.models.orders import (
    HALF_ORDER_MULTIPLIER,
    MS_PER_MINUTE,
    HalfOrderReason,
    Order,
    OrderPriority,
    OrderStatus,
    ScheduledOrder,
    SLAStatus,
    StepTimestamp,
)
from make2manage.models.performance import ForecastData, GamePerformance
from make2manage.models.settings import (
    MUTABLE_SETTINGS,
    ComplexityLevel,
    Difficulty,
    GameSettings,
    GenerationRate,
    OverflowPolicy,
)

__all__ = [
    # Orders
    "HALF_ORDER_MULTIPLIER",
    "MS_PER_MINUTE",
    "HalfOrderReason",
    "Order",
    "OrderPriority",
    "OrderStatus",
    "ScheduledOrder",
    "SLAStatus",
    "StepTimestamp",
    # Departments
    "Department",
    "DepartmentStatus",
    "DispatchPolicy",
    # Customers
    "Customer",
    "CustomerTier",
    # Settings
    "MUTABLE_SETTINGS",
    "ComplexityLevel",
    "Difficulty",
    "GameSettings",
    "GenerationRate",
    "OverflowPolicy",
    # Decisions
    "ChangeSettings",
    "Command",
    "Decision",
    "DecisionType",
    "HoldOrder",
    "PauseSession",
    "RecallOrder",
    "ReleaseOrder",
    "ResumeOrder",
    "ResumeSession",
    # Events and metrics
    "EventType",
    "ForecastData",
    "GameEvent",
    "GamePerformance",
    "Severity",
    # Game state
    "GameSession",
    "GameState",
    "OrderLocation",
    "SessionStatus",
]
