"""
Default configuration values for the make2manage simulation.

These values come from the classroom version of the game. Times are in
minutes here and converted to simulated milliseconds by the engine.
"""

from typing import Any

# =============================================================================
# DEPARTMENTS
# =============================================================================

ENGINEERING_DEPARTMENT_ID = 5

# Standard processing time per step is the midpoint of the classroom range
DEPARTMENTS: list[dict[str, Any]] = [
    {"id": 1, "name": "Welding", "standard_minutes": 3.25, "range_minutes": (2.5, 4.0)},
    {"id": 2, "name": "Machining", "standard_minutes": 3.5, "range_minutes": (3.0, 4.0)},
    {"id": 3, "name": "Painting", "standard_minutes": 2.75, "range_minutes": (2.0, 3.5)},
    {"id": 4, "name": "Assembly", "standard_minutes": 3.0, "range_minutes": (2.0, 4.0)},
    {"id": ENGINEERING_DEPARTMENT_ID, "name": "Engineering", "standard_minutes": 4.0, "range_minutes": (3.0, 5.0)},
]

DEFAULT_CAPACITY = 1
DEFAULT_MAX_QUEUE_SIZE = 10

# Randomized department characteristics (used when randomize_departments is on)
EFFICIENCY_RANGE = (0.8, 1.2)
EQUIPMENT_CONDITION_RANGE = (0.95, 1.0)
MAX_QUEUE_SIZE_RANGE = (8, 15)
MAX_EFFICIENCY = 1.5

# =============================================================================
# CUSTOMERS
# =============================================================================

# Starting history seeds generation weighting
CUSTOMERS: list[dict[str, Any]] = [
    {"id": "CUST-001", "name": "Acme Manufacturing", "tier": "vip", "total_orders": 45, "on_time_orders": 42},
    {"id": "CUST-002", "name": "TechCorp Solutions", "tier": "premium", "total_orders": 28, "on_time_orders": 25},
    {"id": "CUST-003", "name": "Global Industries", "tier": "standard", "total_orders": 67, "on_time_orders": 57},
    {"id": "CUST-004", "name": "Precision Parts Ltd", "tier": "premium", "total_orders": 34, "on_time_orders": 31},
    {"id": "CUST-005", "name": "Quick Delivery Co", "tier": "standard", "total_orders": 23, "on_time_orders": 18},
    {"id": "CUST-006", "name": "MegaCorp Industries", "tier": "vip", "total_orders": 52, "on_time_orders": 49},
    {"id": "CUST-007", "name": "SmallBiz Co", "tier": "standard", "total_orders": 15, "on_time_orders": 12},
]

TIER_SELECTION_WEIGHT: dict[str, float] = {"vip": 1.0, "premium": 2.0, "standard": 4.0}
TIER_VALUE_MULTIPLIER: dict[str, float] = {"vip": 1.5, "premium": 1.3, "standard": 1.0}

# =============================================================================
# ORDER GENERATION
# =============================================================================

# Orders per 30 minutes of session time
ORDERS_PER_HALF_HOUR: dict[str, int] = {"beginner": 8, "intermediate": 18, "advanced": 24}
GENERATION_RATE_FACTOR: dict[str, float] = {"low": 0.75, "medium": 1.0, "high": 1.5}

# Inclusive (min, max) number of non-engineering stations in a route
ROUTE_LENGTH: dict[str, tuple[int, int]] = {
    "beginner": (2, 3),
    "intermediate": (3, 4),
    "advanced": (4, 5),
}
ENGINEERING_ROUTE_CHANCE = 0.25

# Minutes between release and due time, by priority
PRIORITY_DUE_MINUTES: dict[str, float] = {"urgent": 4, "high": 6, "normal": 8, "low": 10}

BASE_VALUE_PER_STEP = 150.0
VALUE_JITTER = (0.8, 1.4)
HALF_ORDER_CHANCE = 0.2
HALF_ORDER_VALUE_FACTOR = 0.6
RUSH_CHANCE: dict[str, float] = {"vip": 0.15, "premium": 0.05, "standard": 0.05}

EARLY_RELEASE_COUNT = 3
EARLY_RELEASE_WINDOW_MINUTES = 2.0

# =============================================================================
# RANDOM EVENTS
# =============================================================================

# Chance per simulated second
EVENT_PROBABILITY_PER_SECOND: dict[str, float] = {
    "equipment_failure": 0.001,
    "rush_order": 0.0005,
    "delivery_delay": 0.0002,
    "efficiency_boost": 0.0003,
}
REPAIR_MINUTES_RANGE = (1.0, 3.0)
EFFICIENCY_BOOST_FACTOR = 1.25

# =============================================================================
# SCORING AND TARGETS
# =============================================================================

LATE_REWARD_FACTOR = 0.5
ON_TIME_TARGET = 95.0
UTILIZATION_OPTIMAL_RANGE = (60.0, 85.0)
AT_RISK_THRESHOLD = 0.8

# =============================================================================
# DIFFICULTY PRESETS
# =============================================================================

DIFFICULTY_PRESETS: dict[str, dict[str, Any]] = {
    "easy": {
        "order_generation_rate": "low",
        "complexity_level": "beginner",
        "session_duration": 15,
        "enable_events": False,
        "game_speed": 1,
    },
    "medium": {
        "order_generation_rate": "medium",
        "complexity_level": "intermediate",
        "session_duration": 30,
        "enable_events": True,
        "game_speed": 1,
    },
    "hard": {
        "order_generation_rate": "high",
        "complexity_level": "advanced",
        "session_duration": 60,
        "enable_events": True,
        "game_speed": 2,
    },
}
