"""
Configuration schema for the make2manage simulation.

Provides Pydantic models for the engine's tunable constants. Session
choices (duration, seed, speed, ...) live in ``GameSettings``; this module
holds everything that shapes the shop floor and the order book.
"""

from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from make2manage.config import defaults
from make2manage.models.customers import Customer
from make2manage.models.departments import DispatchPolicy
from make2manage.models.settings import Difficulty, GameSettings


class DepartmentConfig(BaseModel):
    """Layout of one station."""

    id: int = Field(ge=1, description="Station id used in routes")
    name: str = Field(description="Display name")
    standard_minutes: float = Field(gt=0, description="Base duration of one step")
    capacity: int = Field(default=defaults.DEFAULT_CAPACITY, ge=1)
    max_queue_size: int = Field(default=defaults.DEFAULT_MAX_QUEUE_SIZE, ge=0)
    dispatch_policy: DispatchPolicy = Field(default=DispatchPolicy.FIFO)
    efficiency: float = Field(default=1.0, gt=0, le=defaults.MAX_EFFICIENCY)
    equipment_condition: float = Field(default=1.0, gt=0, le=1.0)


def _default_departments() -> list[DepartmentConfig]:
    return [
        DepartmentConfig(id=d["id"], name=d["name"], standard_minutes=d["standard_minutes"])
        for d in defaults.DEPARTMENTS
    ]


def _default_customers() -> list[Customer]:
    return [Customer(**c) for c in defaults.CUSTOMERS]


class GenerationConfig(BaseModel):
    """Distributions used by procedural order generation."""

    orders_per_half_hour: dict[str, int] = Field(
        default_factory=lambda: dict(defaults.ORDERS_PER_HALF_HOUR),
        description="Order count per 30 minutes by complexity level",
    )
    rate_factor: dict[str, float] = Field(
        default_factory=lambda: dict(defaults.GENERATION_RATE_FACTOR),
        description="Order count multiplier by generation rate",
    )
    route_length: dict[str, tuple[int, int]] = Field(
        default_factory=lambda: dict(defaults.ROUTE_LENGTH),
        description="Inclusive route length range by complexity level",
    )
    engineering_route_chance: float = Field(
        default=defaults.ENGINEERING_ROUTE_CHANCE, ge=0.0, le=1.0
    )
    priority_due_minutes: dict[str, float] = Field(
        default_factory=lambda: dict(defaults.PRIORITY_DUE_MINUTES),
        description="Due window after release by priority",
    )
    base_value_per_step: float = Field(default=defaults.BASE_VALUE_PER_STEP, gt=0)
    value_jitter: tuple[float, float] = Field(default=defaults.VALUE_JITTER)
    half_order_chance: float = Field(default=defaults.HALF_ORDER_CHANCE, ge=0.0, le=1.0)
    half_order_value_factor: float = Field(
        default=defaults.HALF_ORDER_VALUE_FACTOR, gt=0.0, le=1.0
    )
    rush_chance: dict[str, float] = Field(default_factory=lambda: dict(defaults.RUSH_CHANCE))
    tier_selection_weight: dict[str, float] = Field(
        default_factory=lambda: dict(defaults.TIER_SELECTION_WEIGHT)
    )
    tier_value_multiplier: dict[str, float] = Field(
        default_factory=lambda: dict(defaults.TIER_VALUE_MULTIPLIER)
    )
    early_release_count: int = Field(default=defaults.EARLY_RELEASE_COUNT, ge=0)
    early_release_window_minutes: float = Field(
        default=defaults.EARLY_RELEASE_WINDOW_MINUTES, ge=0.0
    )

    @field_validator("value_jitter")
    @classmethod
    def check_range(cls, v: tuple[float, float]) -> tuple[float, float]:
        if v[0] > v[1]:
            raise ValueError(f"Range lower bound exceeds upper bound: {v}")
        return v


class EventsConfig(BaseModel):
    """Random shop-floor events."""

    probability_per_second: dict[str, float] = Field(
        default_factory=lambda: dict(defaults.EVENT_PROBABILITY_PER_SECOND),
        description="Chance per simulated second by event kind",
    )
    repair_minutes: tuple[float, float] = Field(default=defaults.REPAIR_MINUTES_RANGE)
    efficiency_boost_factor: float = Field(default=defaults.EFFICIENCY_BOOST_FACTOR, ge=1.0)
    max_efficiency: float = Field(default=defaults.MAX_EFFICIENCY, gt=0)


class ScoringConfig(BaseModel):
    """Rewards and performance targets."""

    late_reward_factor: float = Field(default=defaults.LATE_REWARD_FACTOR, ge=0.0, le=1.0)
    on_time_target: float = Field(default=defaults.ON_TIME_TARGET, ge=0.0, le=100.0)
    utilization_optimal_range: tuple[float, float] = Field(
        default=defaults.UTILIZATION_OPTIMAL_RANGE
    )
    at_risk_threshold: float = Field(
        default=defaults.AT_RISK_THRESHOLD,
        ge=0.0,
        le=1.0,
        description="Share of the due window after which an order is at risk",
    )


class EngineConfig(BaseModel):
    """Complete engine configuration.

    Loads from JSON or YAML files and merges partial overrides onto the
    defaults.
    """

    departments: list[DepartmentConfig] = Field(default_factory=_default_departments)
    customers: list[Customer] = Field(default_factory=_default_customers)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    events: EventsConfig = Field(default_factory=EventsConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    randomize_departments: bool = Field(
        default=False, description="Draw efficiency, condition and queue limits from the seed"
    )
    max_events: Optional[int] = Field(
        default=None, ge=1, description="Keep only the newest N events in the state"
    )

    @field_validator("departments")
    @classmethod
    def unique_department_ids(cls, v: list[DepartmentConfig]) -> list[DepartmentConfig]:
        ids = [d.id for d in v]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Duplicate department ids: {ids}")
        if not ids:
            raise ValueError("At least one department is required")
        return v

    def department_config(self, department_id: int) -> Optional[DepartmentConfig]:
        for dept in self.departments:
            if dept.id == department_id:
                return dept
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EngineConfig":
        """Create configuration from a dictionary.

        Args:
            data: Configuration dictionary (partial configs are merged with defaults)

        Returns:
            Validated EngineConfig instance
        """
        return cls.model_validate(data)

    @classmethod
    def from_file(cls, path: str | Path) -> "EngineConfig":
        """Load configuration from a JSON or YAML file.

        Args:
            path: Path to configuration file

        Returns:
            Validated EngineConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If file format is not supported
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        data = _read_structured_file(path)
        return cls.from_dict(data or {})

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to a JSON-compatible dictionary."""
        return self.model_dump(mode="json")

    def to_file(self, path: str | Path) -> None:
        """Save configuration to a JSON or YAML file.

        Args:
            path: Path to save configuration to

        Raises:
            ValueError: If file format is not supported
        """
        path = Path(path)
        suffix = path.suffix.lower()
        data = self.to_dict()

        if suffix == ".json":
            import json

            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        elif suffix in (".yaml", ".yml"):
            import yaml

            with open(path, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
        else:
            raise ValueError(
                f"Unsupported config file format: {suffix}. "
                "Use .json or .yaml/.yml"
            )

    def merge(self, overrides: dict[str, Any]) -> "EngineConfig":
        """Create a new config with overrides applied.

        Args:
            overrides: Dictionary of values to override

        Returns:
            New EngineConfig with overrides merged in
        """
        base = self.to_dict()
        _deep_merge(base, overrides)
        return EngineConfig.from_dict(base)


def _read_structured_file(path: Path) -> Any:
    """Read a JSON or YAML document."""
    suffix = path.suffix.lower()

    if suffix == ".json":
        import json

        with open(path, encoding="utf-8") as f:
            return json.load(f)
    if suffix in (".yaml", ".yml"):
        import yaml

        with open(path, encoding="utf-8") as f:
            return yaml.safe_load(f)
    raise ValueError(
        f"Unsupported file format: {suffix}. Use .json or .yaml/.yml"
    )


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> None:
    """Deep merge overrides into base dict (in place).

    Args:
        base: Base dictionary to merge into
        overrides: Values to merge in
    """
    for key, value in overrides.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def apply_difficulty(settings: GameSettings, difficulty: Difficulty | str) -> GameSettings:
    """Return settings with a difficulty preset applied.

    Args:
        settings: Base settings
        difficulty: Preset name (easy, medium, hard)

    Returns:
        New GameSettings with the preset's values and ``difficulty`` set
    """
    difficulty = Difficulty(difficulty)
    preset = defaults.DIFFICULTY_PRESETS[difficulty.value]
    data = settings.model_dump()
    data.update(preset)
    data["difficulty"] = difficulty
    return GameSettings.model_validate(data)


def get_default_config() -> EngineConfig:
    """Get the default engine configuration.

    Returns:
        EngineConfig with all default values
    """
    return EngineConfig()
