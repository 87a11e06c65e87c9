"""
Append-only decision journal.

Decisions are never edited or removed. The undo and redo stacks are not
stored; they are rebuilt by replaying the journal:

- an ordinary undoable decision is pushed on the undo stack and clears
  the redo stack
- an ``undo`` record moves its target from the undo stack to the redo stack
- a ``redo`` record moves its target back
"""

from typing import Optional

from make2manage.engine.errors import SessionClosed, UndoUnavailable
from make2manage.models.decisions import Command, Decision, DecisionType
from make2manage.models.game import GameState, SessionStatus


class DecisionLog:
    """Records decisions and answers undo/redo queries."""

    def record(
        self,
        state: GameState,
        command: Command,
        inverse: Optional[Command],
        order_id: Optional[str] = None,
    ) -> Decision:
        """Append the decision for an applied command.

        Raises:
            SessionClosed: If the session has completed
        """
        self._ensure_open(state)
        decision = Decision(
            id=self._next_id(state),
            timestamp_ms=state.now_ms,
            type=command.decision_type,
            description=command.describe(),
            order_id=order_id,
            command=command,
            inverse=inverse,
        )
        state.decisions.append(decision)
        return decision

    def record_reversal(
        self,
        state: GameState,
        kind: DecisionType,
        target: Decision,
        applied: Command,
    ) -> Decision:
        """Append an undo or redo record pointing at ``target``."""
        self._ensure_open(state)
        verb = "Undid" if kind == DecisionType.UNDO else "Redid"
        decision = Decision(
            id=self._next_id(state),
            timestamp_ms=state.now_ms,
            type=kind,
            description=f"{verb} {target.id}: {target.description}",
            order_id=target.order_id,
            command=applied,
            reverses=target.id,
        )
        state.decisions.append(decision)
        return decision

    def stacks(self, state: GameState) -> tuple[list[Decision], list[Decision]]:
        """Rebuild the (undo, redo) stacks from the journal."""
        by_id = {d.id: d for d in state.decisions}
        undo: list[Decision] = []
        redo: list[Decision] = []
        for decision in state.decisions:
            if decision.type == DecisionType.UNDO:
                target = by_id[decision.reverses]
                undo = [d for d in undo if d.id != target.id]
                redo.append(target)
            elif decision.type == DecisionType.REDO:
                target = by_id[decision.reverses]
                redo = [d for d in redo if d.id != target.id]
                undo.append(target)
            elif decision.can_undo:
                undo.append(decision)
                redo = []
            else:
                redo = []
        return undo, redo

    def next_undo(self, state: GameState) -> Decision:
        """Most recent decision that can be undone.

        Raises:
            UndoUnavailable: If there is nothing to undo
        """
        undo, _ = self.stacks(state)
        if not undo:
            raise UndoUnavailable("Nothing to undo")
        return undo[-1]

    def next_redo(self, state: GameState) -> Decision:
        """Most recently undone decision.

        Raises:
            UndoUnavailable: If there is nothing to redo
        """
        _, redo = self.stacks(state)
        if not redo:
            raise UndoUnavailable("Nothing to redo")
        return redo[-1]

    def _ensure_open(self, state: GameState) -> None:
        if state.session.status == SessionStatus.COMPLETED:
            raise SessionClosed("Session is completed; no further decisions can be recorded")

    @staticmethod
    def _next_id(state: GameState) -> str:
        return f"DEC-{len(state.decisions) + 1:04d}"
