"""Drag gesture state machine.

A ``DragSession`` never mutates the board. While a task is dragged it
computes preview snapshots on disposable copies of the affected columns;
on release it hands one ``MoveOperation`` to the committer and returns to
Idle straight away, whatever the commit eventually decides.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from studioboard.core.errors import ConcurrentDragError, IllegalTransitionError, InvalidMoveError
from studioboard.core.events import DragPhaseChanged, DragPreviewChanged
from studioboard.core.models.entities import MoveOperation
from studioboard.core.models.enums import DragPhase
from studioboard.core.ordering import OrderedCollection

if TYPE_CHECKING:
    import asyncio

    from studioboard.core.board import BoardModel
    from studioboard.core.committer import MoveCommitter
    from studioboard.core.events import EventBus
    from studioboard.core.models.entities import BoardSnapshot, DropTarget, Task
    from studioboard.core.models.enums import CommitOutcome

log = logging.getLogger(__name__)

_TRANSITIONS: dict[tuple[DragPhase, str], DragPhase] = {
    (DragPhase.IDLE, "pick_up"): DragPhase.DRAGGING,
    (DragPhase.DRAGGING, "update"): DragPhase.DRAGGING,
    (DragPhase.DRAGGING, "release"): DragPhase.COMMITTING,
    (DragPhase.DRAGGING, "cancel"): DragPhase.CANCELLED,
    (DragPhase.COMMITTING, "done"): DragPhase.IDLE,
    (DragPhase.CANCELLED, "done"): DragPhase.IDLE,
}


@dataclass(frozen=True)
class DragState:
    """Snapshot of the gesture in progress."""

    phase: DragPhase = DragPhase.IDLE
    dragged_task_id: str | None = None
    origin_column_id: str | None = None
    origin_index: int | None = None
    current_column_id: str | None = None
    current_index: int | None = None

    @property
    def active(self) -> bool:
        return self.phase == DragPhase.DRAGGING

    @property
    def has_target(self) -> bool:
        return self.current_column_id is not None and self.current_index is not None

    def transition(self, event: str) -> DragState:
        """Return the state after ``event``; unknown pairs leave it unchanged."""
        new_phase = _TRANSITIONS.get((self.phase, event), self.phase)
        if new_phase == self.phase:
            return self
        if new_phase == DragPhase.IDLE:
            return DragState()
        return replace(self, phase=new_phase)


class DragSession:
    """Drive one drag gesture at a time from pick-up to commit or cancel."""

    def __init__(
        self,
        board: BoardModel,
        committer: MoveCommitter | None = None,
        *,
        event_bus: EventBus | None = None,
    ) -> None:
        self._board = board
        self._committer = committer
        self._events = event_bus
        self._state = DragState()
        self._origin: BoardSnapshot | None = None
        self.last_commit: asyncio.Task[CommitOutcome] | None = None

    @property
    def state(self) -> DragState:
        return self._state

    @property
    def phase(self) -> DragPhase:
        return self._state.phase

    def pick_up(self, task_id: str) -> DragState:
        """Start dragging ``task_id`` from its committed position."""
        if self._state.phase != DragPhase.IDLE:
            raise ConcurrentDragError(
                f"Task {self._state.dragged_task_id!r} is already being dragged",
                hint="Release or cancel the current drag first",
            )
        snapshot = self._board.snapshot()
        located = snapshot.locate(task_id)
        if located is None:
            raise InvalidMoveError(f"Unknown task: {task_id!r}")
        column_id, index = located
        self._origin = snapshot
        self._state = replace(
            self._state,
            dragged_task_id=task_id,
            origin_column_id=column_id,
            origin_index=index,
            current_column_id=column_id,
            current_index=index,
        )
        self._advance("pick_up")
        return self._state

    def update(self, target: DropTarget | None) -> BoardSnapshot:
        """Track the pointer and return the preview for the new target.

        ``None`` (or a target that resolves to nothing) means the pointer is
        not over a valid drop location; the preview is then the committed
        board.
        """
        self._require_dragging()
        resolved = self._resolve(target)
        column_id, index = resolved if resolved is not None else (None, None)
        self._state = replace(self._state, current_column_id=column_id, current_index=index)
        self._advance("update")

        preview = self._preview(resolved)
        task_id = self._state.dragged_task_id
        assert task_id is not None
        if self._events is not None:
            self._events.publish_nowait(
                DragPreviewChanged(
                    task_id=task_id, column_id=column_id, index=index, snapshot=preview
                )
            )
        return preview

    def release(self) -> MoveOperation | None:
        """Finish the gesture.

        Returns the operation handed to the committer, or ``None`` when the
        drag ended without a move (no valid target, dropped where it started,
        or discarded because the board refused it as invalid).

        Raises:
            IllegalTransitionError: the policy refused the move. The session
                is already back in Idle when this propagates.
        """
        self._require_dragging()
        state = self._state
        if not state.has_target or self._is_origin(state):
            log.debug("Drag of %s released without a move", state.dragged_task_id)
            self.cancel()
            return None

        assert state.dragged_task_id is not None
        assert state.origin_column_id is not None and state.origin_index is not None
        assert state.current_column_id is not None and state.current_index is not None
        operation = MoveOperation(
            task_id=state.dragged_task_id,
            from_column_id=state.origin_column_id,
            from_index=state.origin_index,
            to_column_id=state.current_column_id,
            to_index=state.current_index,
        )
        self._advance("release")
        try:
            if self._committer is not None:
                self.last_commit = self._committer.commit(operation)
        except IllegalTransitionError as exc:
            log.info("Drop of %s refused: %s", operation.task_id, exc.message)
            raise
        except InvalidMoveError as exc:
            log.warning("Discarding drag of %s: %s", operation.task_id, exc.message)
            return None
        finally:
            self._advance("done")
        return operation

    def cancel(self) -> None:
        """Abandon the drag; the board is untouched."""
        if self._state.phase != DragPhase.DRAGGING:
            return
        self._advance("cancel")
        self._advance("done")

    # -------------------- internals --------------------

    def _require_dragging(self) -> None:
        if self._state.phase != DragPhase.DRAGGING:
            raise InvalidMoveError(f"No drag in progress (phase is {self._state.phase.value})")

    def _advance(self, event: str) -> None:
        previous = self._state
        self._state = previous.transition(event)
        if previous.phase == self._state.phase:
            return
        if self._state.phase == DragPhase.IDLE:
            self._origin = None
        log.debug("Drag %s: %s -> %s", event, previous.phase.value, self._state.phase.value)
        if self._events is not None:
            self._events.publish_nowait(
                DragPhaseChanged(
                    task_id=previous.dragged_task_id,
                    from_phase=previous.phase,
                    to_phase=self._state.phase,
                )
            )

    def _is_origin(self, state: DragState) -> bool:
        if state.current_column_id != state.origin_column_id:
            return False
        assert self._origin is not None and state.current_index is not None
        last = len(self._origin.tasks_in(state.current_column_id)) - 1
        return min(state.current_index, last) == state.origin_index

    def _resolve(self, target: DropTarget | None) -> tuple[str, int] | None:
        snapshot = self._origin
        assert snapshot is not None
        if target is None:
            return None
        if target.over_task_id is not None:
            return snapshot.locate(target.over_task_id)
        if target.column_id is None or snapshot.column(target.column_id) is None:
            return None
        size = len(snapshot.tasks_in(target.column_id))
        if target.index is None:
            return target.column_id, size
        return target.column_id, min(target.index, size)

    def _preview(self, resolved: tuple[str, int] | None) -> BoardSnapshot:
        snapshot = self._origin
        assert snapshot is not None
        if resolved is None:
            return snapshot

        column_id, index = resolved
        task_id = self._state.dragged_task_id
        origin_column_id = self._state.origin_column_id
        assert task_id is not None and origin_column_id is not None
        task: Task | None = snapshot.task(task_id)
        assert task is not None

        working = {
            cid: OrderedCollection(
                snapshot.tasks_in(cid), step=self._board.step, min_gap=self._board.min_gap
            )
            for cid in {origin_column_id, column_id}
        }
        working[origin_column_id] = working[origin_column_id].remove_item(task_id)
        destination = working[column_id]
        placed = task.placed(column_id, self._board.policy.status_for(column_id), task.order_index)
        hint = task.order_index if column_id == origin_column_id else None
        working[column_id] = destination.insert_at(
            placed, min(index, len(destination)), order_hint=hint
        )

        tasks = tuple(
            item
            for column in snapshot.ordered_columns()
            for item in (
                working[column.id].items if column.id in working else snapshot.tasks_in(column.id)
            )
        )
        return snapshot.model_copy(update={"tasks": tasks})
