"""
Settings and schedule validation for make2manage.

Checks session settings and authored order schedules before a session
starts. Errors stop the session from starting; warnings are reported and
the engine deals with them at runtime (an order routed to an unknown
station, for example, fails when it gets there).
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from make2manage.config import defaults
from make2manage.config.schema import EngineConfig, get_default_config
from make2manage.engine import rng as seeds
from make2manage.engine.errors import InvalidSeed
from make2manage.models.orders import MS_PER_MINUTE, ScheduledOrder
from make2manage.models.settings import GameSettings


@dataclass
class ValidationError:
    """A single validation finding."""

    field: str
    message: str
    value: Optional[str] = None
    suggestion: Optional[str] = None

    def __str__(self) -> str:
        msg = f"{self.field}: {self.message}"
        if self.value:
            msg += f" (got: {self.value})"
        if self.suggestion:
            msg += f" - {self.suggestion}"
        return msg


@dataclass
class ValidationResult:
    """Result of a validation pass."""

    valid: bool
    errors: list[ValidationError] = field(default_factory=list)
    warnings: list[ValidationError] = field(default_factory=list)

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls(valid=True)

    def add_error(self, error: ValidationError) -> None:
        """Add an error and mark as invalid."""
        self.errors.append(error)
        self.valid = False

    def add_warning(self, warning: ValidationError) -> None:
        """Add a warning (doesn't affect validity)."""
        self.warnings.append(warning)

    def merge(self, other: "ValidationResult") -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        if not other.valid:
            self.valid = False

    def messages(self) -> list[str]:
        """Flat list of findings, errors first."""
        return [f"[ERROR] {e}" for e in self.errors] + [
            f"[WARNING] {w}" for w in self.warnings
        ]


def validate_settings(
    settings: GameSettings,
    config: Optional[EngineConfig] = None,
) -> ValidationResult:
    """Validate session settings against the shop floor.

    Args:
        settings: Settings to validate
        config: Engine configuration (defaults if None)

    Returns:
        ValidationResult with any errors/warnings
    """
    config = config or get_default_config()
    result = ValidationResult.success()
    station_ids = {d.id for d in config.departments}

    if settings.use_predetermined_orders:
        if not settings.predetermined_schedule:
            result.add_error(ValidationError(
                field="predetermined_schedule",
                message="Predetermined orders were requested but the schedule is empty",
                suggestion="Load a level or turn off use_predetermined_orders",
            ))
        else:
            result.merge(
                validate_schedule(settings.predetermined_schedule, config, settings.session_duration)
            )
    elif settings.random_seed is not None:
        try:
            seeds.resolve_seed(settings.random_seed)
        except InvalidSeed as e:
            result.add_error(ValidationError(
                field="random_seed",
                message=str(e),
                value=repr(settings.random_seed),
                suggestion="Use a non-negative integer or a short token of letters and digits",
            ))

    for department_id in settings.dispatch_policies:
        if department_id not in station_ids:
            result.add_warning(ValidationError(
                field="dispatch_policies",
                message="Policy override for an unknown station is ignored",
                value=str(department_id),
            ))

    return result


def validate_schedule(
    schedule: list[ScheduledOrder],
    config: Optional[EngineConfig] = None,
    session_duration: int = 30,
) -> ValidationResult:
    """Validate an authored order schedule.

    Duplicate order ids are errors. Unknown stations, Engineering placed
    after the first step, releases after the session ends and due times
    before release are warnings.

    Args:
        schedule: Scheduled orders to check
        config: Engine configuration (defaults if None)
        session_duration: Session length in minutes

    Returns:
        ValidationResult with any errors/warnings
    """
    config = config or get_default_config()
    result = ValidationResult.success()
    station_ids = {d.id for d in config.departments}
    session_ms = session_duration * MS_PER_MINUTE

    counts = Counter(item.order.id for item in schedule)
    for order_id, count in counts.items():
        if count > 1:
            result.add_error(ValidationError(
                field="order.id",
                message=f"Order id appears {count} times",
                value=order_id,
                suggestion="Order ids must be unique within a level",
            ))

    for item in schedule:
        order = item.order
        where = f"orders[{order.id}]"

        unknown = [s for s in order.route if s not in station_ids]
        if unknown:
            result.add_warning(ValidationError(
                field=f"{where}.route",
                message="Route visits unknown stations; the order will fail there",
                value=str(unknown),
            ))

        engineering = defaults.ENGINEERING_DEPARTMENT_ID
        if engineering in order.route[1:]:
            result.add_warning(ValidationError(
                field=f"{where}.route",
                message="Engineering should be the first step when present",
                value=str(order.route),
            ))

        extra = [s for s in order.station_durations if s not in order.route]
        if extra:
            result.add_warning(ValidationError(
                field=f"{where}.station_durations",
                message="Durations given for stations not on the route",
                value=str(extra),
            ))

        if item.release_time_ms > session_ms:
            result.add_warning(ValidationError(
                field=f"{where}.release_time_ms",
                message="Release time is after the end of the session",
                value=str(item.release_time_ms),
                suggestion=f"Release within the first {session_duration} minutes",
            ))

        if order.due_minutes is not None and order.due_minutes * MS_PER_MINUTE < item.release_time_ms:
            result.add_warning(ValidationError(
                field=f"{where}.due_minutes",
                message="Order is due before it is released",
                value=f"due={order.due_minutes}, release={item.release_time_ms / MS_PER_MINUTE:g}",
            ))

    return result
