"""
Level file loader for make2manage.

A level is an authored order book for predetermined sessions, written in
JSON or YAML:

    id: rush-hour
    name: Rush Hour
    sessionDuration: 30
    scheduledOrders:
      - releaseTimeMinutes: 2
        order:
          id: ORD-001
          customerName: Acme Manufacturing
          priority: high
          orderValue: 1200
          dueGameMinutes: 12
          route: [1, 2, 4]

Release times may be given as ``releaseTimeMs``, ``releaseTimeMinutes``
or ``releaseTime`` (values above 1000 are milliseconds, smaller values are
minutes). Authored durations (``processingTime``, ``stationDurations``)
follow the same rule. Release times are clamped to the session and the
schedule is sorted by release time.
"""

import json
from pathlib import Path
from typing import Any, Optional, TextIO

import yaml
from pydantic import BaseModel, Field, ValidationError

from make2manage.models.orders import (
    HALF_ORDER_MULTIPLIER,
    MS_PER_MINUTE,
    HalfOrderReason,
    Order,
    ScheduledOrder,
)

# Authored times above this are milliseconds, at or below it minutes
MS_THRESHOLD = 1000

DEFAULT_CUSTOMER_ID = "CUST-LEVEL"
DEFAULT_CUSTOMER_NAME = "Level Customer"
DEFAULT_ORDER_VALUE = 1000.0

# Authored key -> Order field
ORDER_FIELDS = {
    "customerId": "customer_id",
    "customerName": "customer_name",
    "orderValue": "value",
    "dueGameMinutes": "due_minutes",
    "rushOrder": "rush_order",
    "halfOrderReason": "half_order_reason",
    "processingTimeMultiplier": "processing_time_multiplier",
    "specialInstructions": "special_instructions",
}

# Owned by the engine, never read from a level
ENGINE_FIELDS = frozenset(
    {"status", "remaining_ms", "step_duration_ms", "enqueue_seq", "held_from", "blocked"}
)


class LevelFormatError(Exception):
    """Error reading a level file."""

    def __init__(self, message: str, index: Optional[int] = None) -> None:
        self.index = index
        if index is not None:
            message = f"Scheduled order {index}: {message}"
        super().__init__(message)


class Level(BaseModel):
    """An authored order book."""

    id: str = Field(description="Level identifier")
    name: str = Field(default="", description="Display name")
    description: str = Field(default="")
    session_duration: int = Field(default=30, description="Session length in minutes")
    scheduled_orders: list[ScheduledOrder] = Field(default_factory=list)

    @property
    def order_count(self) -> int:
        return len(self.scheduled_orders)


def authored_ms(value: float) -> int:
    """Convert an authored time to milliseconds (> 1000 is ms, else minutes)."""
    if value > MS_THRESHOLD:
        return round(value)
    return round(value * MS_PER_MINUTE)


def release_time_ms(raw: dict[str, Any], session_duration: int, index: Optional[int] = None) -> int:
    """Release time of an authored entry, clamped to the session.

    Raises:
        LevelFormatError: If no release time is given
    """
    session_ms = session_duration * MS_PER_MINUTE

    if _is_number(raw.get("releaseTimeMs")):
        release = round(raw["releaseTimeMs"])
    elif _is_number(raw.get("releaseTime")):
        release = authored_ms(raw["releaseTime"])
    elif _is_number(raw.get("releaseTimeMinutes")):
        release = round(raw["releaseTimeMinutes"] * MS_PER_MINUTE)
    else:
        raise LevelFormatError(
            "Missing release time (use releaseTimeMinutes or releaseTimeMs)", index
        )
    return max(0, min(session_ms, release))


def normalize_order(raw: dict[str, Any], release_ms: int, index: Optional[int] = None) -> Order:
    """Build an ``Order`` from an authored order object.

    Raises:
        LevelFormatError: If the order is missing its id or does not validate
    """
    if not raw.get("id"):
        raise LevelFormatError("Missing required 'order.id' field", index)

    data: dict[str, Any] = {
        "id": str(raw["id"]),
        "customer_id": DEFAULT_CUSTOMER_ID,
        "customer_name": DEFAULT_CUSTOMER_NAME,
        "value": DEFAULT_ORDER_VALUE,
        "route": [1],
    }
    for key, value in raw.items():
        field_name = ORDER_FIELDS.get(key, key)
        if field_name in ENGINE_FIELDS or field_name not in Order.model_fields:
            continue
        if value is not None:
            data[field_name] = value

    if raw.get("isHalfOrder") and "half_order_reason" not in data:
        data["half_order_reason"] = HalfOrderReason.PARTIAL_WORK
    if "half_order_reason" in data and "processing_time_multiplier" not in data:
        data["processing_time_multiplier"] = HALF_ORDER_MULTIPLIER

    route = data["route"]
    durations: dict[int, int] = {}
    if _is_number(raw.get("processingTime")):
        step_ms = authored_ms(raw["processingTime"])
        durations = {int(station): step_ms for station in route}
    authored = raw.get("stationDurations") or {}
    if not isinstance(authored, dict):
        raise LevelFormatError("'stationDurations' must map station ids to durations", index)
    for station, duration in authored.items():
        durations[int(station)] = authored_ms(duration)
    if durations:
        data["station_durations"] = durations

    # Fresh order: engine bookkeeping is never authored
    data.update(
        current_step_index=0,
        timestamps=[],
        created_at_ms=release_ms,
        completed_at_ms=None,
    )

    try:
        return Order.model_validate(data)
    except ValidationError as e:
        raise LevelFormatError(f"Invalid order {raw['id']}: {e}", index) from e


def normalize_scheduled_orders(
    raw_list: list[dict[str, Any]],
    session_duration: int = 30,
) -> list[ScheduledOrder]:
    """Normalize authored entries into scheduled orders sorted by release time.

    Raises:
        LevelFormatError: If an entry is malformed
    """
    if not isinstance(raw_list, list):
        raise LevelFormatError("'scheduledOrders' must be a list")

    scheduled = []
    for index, raw in enumerate(raw_list):
        if not isinstance(raw, dict) or not isinstance(raw.get("order"), dict):
            raise LevelFormatError("Missing required 'order' object", index)
        release = release_time_ms(raw, session_duration, index)
        order = normalize_order(raw["order"], release, index)
        scheduled.append(ScheduledOrder(order=order, release_time_ms=release))

    return sorted(scheduled, key=lambda s: s.release_time_ms)


def load_level_from_dict(data: Any, session_duration: Optional[int] = None) -> Level:
    """Build a ``Level`` from a parsed document.

    Args:
        data: Parsed JSON/YAML document
        session_duration: Session length in minutes (the level's own, or 30,
            if None)

    Raises:
        LevelFormatError: If the document is not a valid level
    """
    if not isinstance(data, dict) or not isinstance(data.get("scheduledOrders"), list):
        raise LevelFormatError("Invalid level: expected { scheduledOrders: [...] }")
    if not data.get("id"):
        raise LevelFormatError("Invalid level: missing required top-level 'id' field")

    duration = session_duration or int(data.get("sessionDuration") or 30)
    return Level(
        id=str(data["id"]),
        name=str(data.get("name") or data["id"]),
        description=str(data.get("description") or ""),
        session_duration=duration,
        scheduled_orders=normalize_scheduled_orders(data["scheduledOrders"], duration),
    )


def load_level(source: str | Path | TextIO, session_duration: Optional[int] = None) -> Level:
    """Load a level from a JSON or YAML file.

    Args:
        source: File path or file-like object (YAML also parses JSON)
        session_duration: Session length in minutes to clamp against

    Returns:
        Parsed Level

    Raises:
        LevelFormatError: If the file cannot be parsed or is not a valid level
        FileNotFoundError: If source is a path and the file doesn't exist
    """
    try:
        if isinstance(source, (str, Path)):
            path = Path(source)
            with open(path, encoding="utf-8") as f:
                if path.suffix.lower() == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        else:
            data = yaml.safe_load(source)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise LevelFormatError(f"Cannot parse level file: {e}") from e

    return load_level_from_dict(data, session_duration)


def level_to_dict(level: Level) -> dict[str, Any]:
    """Authoring form of a level, readable by ``load_level_from_dict``."""
    scheduled = []
    for item in level.scheduled_orders:
        order = item.order
        entry: dict[str, Any] = {
            "id": order.id,
            "customerId": order.customer_id,
            "customerName": order.customer_name,
            "priority": order.priority.value,
            "orderValue": order.value,
            "route": list(order.route),
        }
        if order.due_minutes is not None:
            entry["dueGameMinutes"] = order.due_minutes
        if order.station_durations:
            entry["stationDurations"] = dict(order.station_durations)
        if order.half_order_reason is not None:
            entry["halfOrderReason"] = order.half_order_reason.value
            entry["processingTimeMultiplier"] = order.processing_time_multiplier
        if order.rush_order:
            entry["rushOrder"] = True
        if order.special_instructions:
            entry["specialInstructions"] = order.special_instructions
        scheduled.append({"releaseTimeMs": item.release_time_ms, "order": entry})

    return {
        "id": level.id,
        "name": level.name,
        "description": level.description,
        "sessionDuration": level.session_duration,
        "scheduledOrders": scheduled,
    }


def write_level(level: Level, path: str | Path) -> None:
    """Write a level as JSON or YAML, by file suffix."""
    path = Path(path)
    data = level_to_dict(level)
    with open(path, "w", encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            json.dump(data, f, indent=2)
        else:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
