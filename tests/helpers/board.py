"""Builders for board fixtures used across unit tests."""

from __future__ import annotations

from studioboard.core.constants import ORDER_STEP
from studioboard.core.models.entities import BoardSnapshot, Column, Task


def build_snapshot(
    layout: dict[str, list[str]],
    *,
    board_id: str = "main",
    limits: dict[str, int] | None = None,
) -> BoardSnapshot:
    """Build a snapshot from ``{column_id: [task ids in order]}``.

    Column ids double as status keys.
    """
    limits = limits or {}
    columns = tuple(
        Column(
            id=column_id,
            title=column_id.replace("-", " ").title(),
            status_key=column_id,
            limit=limits.get(column_id),
            order_index=float(position),
        )
        for position, column_id in enumerate(layout)
    )
    tasks = tuple(
        Task(
            id=task_id,
            column_id=column_id,
            status=column_id,
            title=f"Task {task_id}",
            order_index=ORDER_STEP * (position + 1),
        )
        for column_id, task_ids in layout.items()
        for position, task_id in enumerate(task_ids)
    )
    return BoardSnapshot(board_id=board_id, columns=columns, tasks=tasks)


def kanban_snapshot() -> BoardSnapshot:
    """Three-column board with a few tasks per column."""
    return build_snapshot(
        {
            "todo": ["t1", "t2", "t3"],
            "doing": ["t4"],
            "done": ["t5", "t6"],
        }
    )
