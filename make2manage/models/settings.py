"""
Per-session game settings.

Settings are supplied when a session is created. Only the fields listed in
``MUTABLE_SETTINGS`` may change once the session has started.
"""

from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from make2manage.models.departments import DispatchPolicy
from make2manage.models.orders import ScheduledOrder


class GenerationRate(str, Enum):
    """How busy the order book is."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ComplexityLevel(str, Enum):
    """Route complexity of generated orders."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Difficulty(str, Enum):
    """Named presets over generation rate, complexity and events."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class OverflowPolicy(str, Enum):
    """What happens when a station refuses admission during routing."""

    BLOCK = "block"
    REJECT = "reject"


SessionDuration = Literal[15, 30, 60]
GameSpeed = Literal[1, 2, 4, 8]

MUTABLE_SETTINGS = frozenset(
    {
        "game_speed",
        "enable_events",
        "manual_mode",
        "overflow_policy",
        "dispatch_policies",
    }
)


class GameSettings(BaseModel):
    """Configuration for one game session."""

    session_duration: SessionDuration = Field(default=30, description="Session length in minutes")
    order_generation_rate: GenerationRate = Field(default=GenerationRate.MEDIUM)
    complexity_level: ComplexityLevel = Field(default=ComplexityLevel.INTERMEDIATE)
    random_seed: Optional[Union[int, str]] = Field(
        default=None, description="Seed for procedural generation (None draws one)"
    )
    game_speed: GameSpeed = Field(default=1, description="Simulated ms per real ms")
    enable_events: bool = Field(default=False, description="Random shop-floor events")
    manual_mode: bool = Field(
        default=False, description="Released orders wait for a release command"
    )
    use_predetermined_orders: bool = Field(default=False)
    predetermined_schedule: list[ScheduledOrder] = Field(default_factory=list)
    overflow_policy: OverflowPolicy = Field(default=OverflowPolicy.BLOCK)
    dispatch_policies: dict[int, DispatchPolicy] = Field(
        default_factory=dict, description="Per-station dispatch policy overrides"
    )
    difficulty: Optional[Difficulty] = Field(default=None)

    @field_validator("dispatch_policies", mode="before")
    @classmethod
    def coerce_policy_keys(cls, v):
        """JSON object keys arrive as strings."""
        if isinstance(v, dict):
            return {int(k): val for k, val in v.items()}
        return v

    @property
    def session_duration_ms(self) -> int:
        return self.session_duration * 60_000
