"""
Decision and command models.

Every state-changing action a player takes is an explicit command object.
Applying a command appends one Decision to the append-only journal; the
decision carries the command that was applied and the command that
reverses it, so undo never has to diff state.
"""

from enum import Enum
from typing import TYPE_CHECKING, Annotated, Any, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from make2manage.models.game import GameState


class DecisionType(str, Enum):
    """Kinds of journal entries."""

    ORDER_RELEASE = "order_release"
    ORDER_RECALL = "order_recall"
    GAME_PAUSE = "game_pause"
    GAME_RESUME = "game_resume"
    SETTINGS_CHANGE = "settings_change"
    ORDER_HOLD = "order_hold"
    ORDER_RESUME = "order_resume"
    UNDO = "undo"
    REDO = "redo"


# =============================================================================
# Commands
# =============================================================================


class ReleaseOrder(BaseModel):
    """Move a pending order into its first station."""

    kind: Literal["release_order"] = "release_order"
    order_id: str

    decision_type: ClassVar[DecisionType] = DecisionType.ORDER_RELEASE

    def inverse(self, state: "GameState") -> "Command":
        return RecallOrder(order_id=self.order_id)

    def describe(self) -> str:
        return f"Released order {self.order_id} to the floor"


class RecallOrder(BaseModel):
    """Pull a released order that has not started back into the pending pool."""

    kind: Literal["recall_order"] = "recall_order"
    order_id: str

    decision_type: ClassVar[DecisionType] = DecisionType.ORDER_RECALL

    def inverse(self, state: "GameState") -> "Command":
        return ReleaseOrder(order_id=self.order_id)

    def describe(self) -> str:
        return f"Recalled order {self.order_id} to the pending pool"


class PauseSession(BaseModel):
    kind: Literal["pause"] = "pause"

    decision_type: ClassVar[DecisionType] = DecisionType.GAME_PAUSE

    def inverse(self, state: "GameState") -> "Command":
        return ResumeSession()

    def describe(self) -> str:
        return "Paused the session"


class ResumeSession(BaseModel):
    kind: Literal["resume"] = "resume"

    decision_type: ClassVar[DecisionType] = DecisionType.GAME_RESUME

    def inverse(self, state: "GameState") -> "Command":
        return PauseSession()

    def describe(self) -> str:
        return "Resumed the session"


class ChangeSettings(BaseModel):
    """Change one or more mutable session settings."""

    kind: Literal["change_settings"] = "change_settings"
    changes: dict[str, Any]

    decision_type: ClassVar[DecisionType] = DecisionType.SETTINGS_CHANGE

    def inverse(self, state: "GameState") -> "Command":
        current = state.session.settings.model_dump(mode="json")
        return ChangeSettings(changes={key: current[key] for key in self.changes})

    def describe(self) -> str:
        keys = ", ".join(sorted(self.changes))
        return f"Changed settings: {keys}"


class HoldOrder(BaseModel):
    kind: Literal["hold_order"] = "hold_order"
    order_id: str

    decision_type: ClassVar[DecisionType] = DecisionType.ORDER_HOLD

    def inverse(self, state: "GameState") -> "Command":
        return ResumeOrder(order_id=self.order_id)

    def describe(self) -> str:
        return f"Put order {self.order_id} on hold"


class ResumeOrder(BaseModel):
    kind: Literal["resume_order"] = "resume_order"
    order_id: str

    decision_type: ClassVar[DecisionType] = DecisionType.ORDER_RESUME

    def inverse(self, state: "GameState") -> "Command":
        return HoldOrder(order_id=self.order_id)

    def describe(self) -> str:
        return f"Resumed order {self.order_id}"


Command = Annotated[
    Union[
        ReleaseOrder,
        RecallOrder,
        PauseSession,
        ResumeSession,
        ChangeSettings,
        HoldOrder,
        ResumeOrder,
    ],
    Field(discriminator="kind"),
]


# =============================================================================
# Journal records
# =============================================================================


class Decision(BaseModel):
    """One immutable journal entry."""

    id: str = Field(description="Sequential id, DEC-0001 and up")
    timestamp_ms: int = Field(ge=0, description="Session time when recorded")
    type: DecisionType
    description: str
    order_id: Optional[str] = Field(default=None)
    command: Optional[Command] = Field(default=None, description="Command that was applied")
    inverse: Optional[Command] = Field(default=None, description="Command that reverses it")
    reverses: Optional[str] = Field(
        default=None, description="Decision an undo or redo refers to"
    )

    @property
    def is_reversal(self) -> bool:
        return self.type in (DecisionType.UNDO, DecisionType.REDO)

    @property
    def can_undo(self) -> bool:
        return not self.is_reversal and self.inverse is not None
