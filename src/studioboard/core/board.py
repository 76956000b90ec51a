"""Authoritative in-memory board model.

``BoardModel`` owns the columns, the per-column task orderings and the
column to status mapping. Mutation is synchronous and all-or-nothing: every
new ordering is computed before any of them is stored, so a failed move never
leaves a partially applied state behind. Renderers only ever see frozen
snapshots.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from studioboard.core.constants import MIN_ORDER_GAP, ORDER_STEP
from studioboard.core.errors import (
    ColumnLimitReachedError,
    IllegalTransitionError,
    InvalidMoveError,
    UnknownColumnError,
)
from studioboard.core.events import BoardChanged, TaskMoved
from studioboard.core.models.entities import BoardSnapshot, Column, Task
from studioboard.core.models.policies import ColumnStatusPolicy
from studioboard.core.ordering import OrderedCollection

if TYPE_CHECKING:
    from studioboard.core.events import EventBus
    from studioboard.core.models.entities import MoveOperation
    from studioboard.core.models.policies import StatusPolicy

log = logging.getLogger(__name__)


class BoardModel:
    """Columns, tasks and their orderings for one board session."""

    def __init__(
        self,
        snapshot: BoardSnapshot,
        policy: StatusPolicy | None = None,
        *,
        event_bus: EventBus | None = None,
        step: float = ORDER_STEP,
        min_gap: float = MIN_ORDER_GAP,
        enforce_column_limits: bool = True,
    ) -> None:
        self.board_id = snapshot.board_id
        self._events = event_bus
        self._step = step
        self._min_gap = min_gap
        self._enforce_column_limits = enforce_column_limits
        self._revision = 0
        self._closed = False

        self._columns: OrderedCollection[Column] = OrderedCollection(
            snapshot.columns, step=step, min_gap=min_gap
        )
        self._policy: StatusPolicy = policy or ColumnStatusPolicy.from_columns(snapshot.columns)
        for column in self._columns:
            self._policy.status_for(column.id)

        grouped: dict[str, list[Task]] = {column.id: [] for column in self._columns}
        seen: set[str] = set()
        for task in snapshot.tasks:
            if task.column_id not in grouped:
                raise UnknownColumnError(task.column_id)
            if task.id in seen:
                raise ValueError(f"Duplicate task id in snapshot: {task.id!r}")
            seen.add(task.id)
            status = self._policy.status_for(task.column_id)
            if task.status != status:
                log.warning(
                    "Task %s carried status %r in column %s; corrected to %r",
                    task.id,
                    task.status,
                    task.column_id,
                    status,
                )
                task = task.model_copy(update={"status": status})
            grouped[task.column_id].append(task)

        self._tasks_by_column: dict[str, OrderedCollection[Task]] = {
            column_id: OrderedCollection(tasks, step=step, min_gap=min_gap)
            for column_id, tasks in grouped.items()
        }
        self._location: dict[str, str] = {task.id: task.column_id for task in snapshot.tasks}

    # -------------------- queries --------------------

    @property
    def policy(self) -> StatusPolicy:
        return self._policy

    @property
    def revision(self) -> int:
        """Number of committed mutations since load."""
        return self._revision

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def step(self) -> float:
        return self._step

    @property
    def min_gap(self) -> float:
        return self._min_gap

    @property
    def columns(self) -> tuple[Column, ...]:
        return self._columns.items

    @property
    def tasks_by_column(self) -> dict[str, tuple[Task, ...]]:
        return {column.id: self._tasks_by_column[column.id].items for column in self._columns}

    def column(self, column_id: str) -> Column | None:
        return self._columns.get(column_id)

    def task(self, task_id: str) -> Task | None:
        column_id = self._location.get(task_id)
        if column_id is None:
            return None
        return self._tasks_by_column[column_id].get(task_id)

    def tasks_in(self, column_id: str) -> tuple[Task, ...]:
        ordering = self._tasks_by_column.get(column_id)
        if ordering is None:
            raise UnknownColumnError(column_id)
        return ordering.items

    def locate(self, task_id: str) -> tuple[str, int]:
        """Return ``(column_id, index)`` of a task."""
        column_id = self._location.get(task_id)
        if column_id is None:
            raise InvalidMoveError(f"Unknown task: {task_id!r}")
        return column_id, self._tasks_by_column[column_id].index_of(task_id)

    def snapshot(self) -> BoardSnapshot:
        """Return a frozen view of the committed state."""
        return BoardSnapshot(
            board_id=self.board_id,
            columns=self._columns.items,
            tasks=tuple(
                task for column in self._columns for task in self._tasks_by_column[column.id]
            ),
        )

    # -------------------- mutation --------------------

    def move_task(
        self,
        task_id: str,
        to_column_id: str,
        to_index: int,
        *,
        check_policy: bool = True,
        order_hint: float | None = None,
    ) -> Task:
        """Move a task so it ends at ``to_index`` of ``to_column_id``.

        ``to_index`` must lie in ``[0, len(destination)]`` measured on the
        destination's current sequence; for a move inside one column the end
        position is clamped to the last slot. Rollbacks pass
        ``check_policy=False`` so workflow rules and WIP limits cannot trap a
        task in a column the server never accepted.

        Raises:
            InvalidMoveError: unknown task or column, or index out of range.
            IllegalTransitionError: the policy refuses the transition.
        """
        self._ensure_open()
        from_column_id = self._location.get(task_id)
        if from_column_id is None:
            raise InvalidMoveError(f"Unknown task: {task_id!r}")
        destination = self._tasks_by_column.get(to_column_id)
        if destination is None:
            raise InvalidMoveError(f"Unknown column: {to_column_id!r}")
        if not 0 <= to_index <= len(destination):
            raise InvalidMoveError(
                f"Index {to_index} outside 0..{len(destination)} for column {to_column_id!r}"
            )

        source = self._tasks_by_column[from_column_id]
        from_index = source.index_of(task_id)
        task = source[from_index]
        same_column = from_column_id == to_column_id
        if same_column and min(to_index, len(source) - 1) == from_index:
            return task

        if check_policy:
            if not self._policy.is_allowed(from_column_id, to_column_id):
                raise IllegalTransitionError(from_column_id, to_column_id)
            column = self._columns.get(to_column_id)
            if (
                not same_column
                and self._enforce_column_limits
                and column is not None
                and column.limit is not None
                and len(destination) >= column.limit
            ):
                raise ColumnLimitReachedError(from_column_id, to_column_id, column.limit)

        to_status = self._policy.status_for(to_column_id)
        if same_column:
            hint = order_hint if order_hint is not None else task.order_index
            reordered = source.remove_item(task_id)
            updates = {
                to_column_id: reordered.insert_at(
                    task, min(to_index, len(reordered)), order_hint=hint
                )
            }
        else:
            relocated = task.placed(to_column_id, to_status, task.order_index)
            updates = {
                from_column_id: source.remove_item(task_id),
                to_column_id: destination.insert_at(relocated, to_index, order_hint=order_hint),
            }

        self._tasks_by_column.update(updates)
        self._location[task_id] = to_column_id
        self._revision += 1

        final_index = self._tasks_by_column[to_column_id].index_of(task_id)
        moved = self._tasks_by_column[to_column_id][final_index]
        log.debug(
            "Moved task %s %s[%d] -> %s[%d] (%s -> %s)",
            task_id,
            from_column_id,
            from_index,
            to_column_id,
            final_index,
            task.status,
            moved.status,
        )
        self._publish_move(task, moved, from_index, final_index)
        return moved

    def apply_operation(self, operation: MoveOperation, *, check_policy: bool = True) -> Task:
        """Apply a wire-level move; applying it twice equals applying it once."""
        return self.move_task(
            operation.task_id,
            operation.to_column_id,
            operation.to_index,
            check_policy=check_policy,
        )

    def move_column(self, column_id: str, to_index: int) -> Column:
        """Reorder a column left-to-right; membership never changes."""
        self._ensure_open()
        if column_id not in self._columns:
            raise InvalidMoveError(f"Unknown column: {column_id!r}")
        if not 0 <= to_index < len(self._columns):
            raise InvalidMoveError(f"Column index {to_index} outside 0..{len(self._columns) - 1}")
        if self._columns.index_of(column_id) == to_index:
            return self._columns[to_index]
        self._columns = self._columns.move(column_id, to_index)
        self._revision += 1
        self._publish_changed()
        return self._columns[to_index]

    def invariant_violations(self) -> list[str]:
        """Describe every broken board invariant (empty when consistent)."""
        problems: list[str] = []
        column_ids = set(self._columns.ids())
        for task_id, column_id in self._location.items():
            if column_id not in column_ids:
                problems.append(f"task {task_id} references missing column {column_id}")
        for column_id, ordering in self._tasks_by_column.items():
            indices = [task.order_index for task in ordering]
            if any(a >= b for a, b in zip(indices, indices[1:], strict=False)):
                problems.append(f"column {column_id} order indices are not strictly increasing")
            for task in ordering:
                if task.column_id != column_id or self._location.get(task.id) != column_id:
                    problems.append(f"task {task.id} is misfiled under column {column_id}")
                if task.status != self._policy.status_for(column_id):
                    problems.append(f"task {task.id} status {task.status!r} disagrees with column")
        return problems

    def close(self) -> None:
        """Tear down the session; the board is unusable afterwards."""
        self._tasks_by_column.clear()
        self._location.clear()
        self._closed = True

    # -------------------- internals --------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise InvalidMoveError(f"Board {self.board_id!r} session is closed")

    def _publish_move(self, before: Task, after: Task, from_index: int, to_index: int) -> None:
        if self._events is None:
            return
        self._events.publish_nowait(
            TaskMoved(
                task_id=after.id,
                from_column_id=before.column_id,
                from_index=from_index,
                to_column_id=after.column_id,
                to_index=to_index,
                from_status=before.status,
                to_status=after.status,
            )
        )
        self._publish_changed()

    def _publish_changed(self) -> None:
        if self._events is None:
            return
        self._events.publish_nowait(
            BoardChanged(board_id=self.board_id, revision=self._revision, snapshot=self.snapshot())
        )
