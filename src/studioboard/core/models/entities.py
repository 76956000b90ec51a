"""Core domain entities.

All entities are frozen: the board hands them to renderers directly, so a
snapshot can never be used to bypass the board's invariants.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Self
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from studioboard.core.models.enums import MoveResultKind, TaskPriority

_WHITESPACE_RE = re.compile(r"\s+")


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _new_operation_id() -> str:
    return uuid4().hex


def status_key_from_title(title: str) -> str:
    """Derive a status key from a column title ("In Progress" -> "in-progress")."""
    return _WHITESPACE_RE.sub("-", title.strip().lower())


class DomainModel(BaseModel):
    """Base model with common config."""

    model_config = ConfigDict(from_attributes=True, frozen=True)


class OrderedEntity(DomainModel):
    """Entity positioned inside an OrderedCollection."""

    id: str
    order_index: float = 0.0

    def with_order_index(self, value: float) -> Self:
        """Return a copy carrying a new order index."""
        return self.model_copy(update={"order_index": value})


class Column(OrderedEntity):
    """Workflow stage holding an ordered list of tasks."""

    title: str
    status_key: str = ""
    color: str = ""
    limit: int | None = Field(default=None, ge=1)

    @model_validator(mode="before")
    @classmethod
    def derive_status_key(cls, data: object) -> object:
        match data:
            case {"title": str() as title, **rest} if not rest.get("status_key"):
                return {**data, "status_key": status_key_from_title(title)}
            case _:
                return data


class Task(OrderedEntity):
    """Unit of work (Kanban card)."""

    column_id: str
    status: str = ""
    title: str = ""
    description: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_id: str | None = None
    tags: tuple[str, ...] = ()
    due_date: datetime | None = None

    def placed(self, column_id: str, status: str, order_index: float) -> Task:
        """Return a copy relocated to ``column_id`` with ``status``."""
        return self.model_copy(
            update={"column_id": column_id, "status": status, "order_index": order_index}
        )


class BoardSnapshot(DomainModel):
    """Read-only view of a board: columns and tasks as flat sets."""

    board_id: str
    columns: tuple[Column, ...] = ()
    tasks: tuple[Task, ...] = ()

    def ordered_columns(self) -> tuple[Column, ...]:
        return tuple(sorted(self.columns, key=lambda c: (c.order_index, c.id)))

    def column(self, column_id: str) -> Column | None:
        return next((c for c in self.columns if c.id == column_id), None)

    def task(self, task_id: str) -> Task | None:
        return next((t for t in self.tasks if t.id == task_id), None)

    def tasks_in(self, column_id: str) -> tuple[Task, ...]:
        """Tasks of one column in display order."""
        resident = (t for t in self.tasks if t.column_id == column_id)
        return tuple(sorted(resident, key=lambda t: (t.order_index, t.id)))

    def ordering(self) -> dict[str, tuple[str, ...]]:
        """Map each column id to its task ids in display order."""
        return {c.id: tuple(t.id for t in self.tasks_in(c.id)) for c in self.ordered_columns()}

    def locate(self, task_id: str) -> tuple[str, int] | None:
        """Return ``(column_id, index)`` for a task, or None if absent."""
        task = self.task(task_id)
        if task is None:
            return None
        ids = [t.id for t in self.tasks_in(task.column_id)]
        return task.column_id, ids.index(task_id)


class MoveOperation(DomainModel):
    """Wire-level unit of change; replayable and idempotent."""

    task_id: str
    from_column_id: str
    from_index: int = Field(ge=0)
    to_column_id: str
    to_index: int = Field(ge=0)
    operation_id: str = Field(default_factory=_new_operation_id)
    client_timestamp: datetime = Field(default_factory=_utc_now)


class MoveResult(DomainModel):
    """Answer from the persistence collaborator."""

    kind: MoveResultKind
    reason: str | None = None

    @classmethod
    def accept(cls) -> MoveResult:
        return cls(kind=MoveResultKind.ACCEPTED)

    @classmethod
    def reject(cls, reason: str) -> MoveResult:
        return cls(kind=MoveResultKind.REJECTED, reason=reason)

    @property
    def accepted(self) -> bool:
        return self.kind == MoveResultKind.ACCEPTED


class DropTarget(DomainModel):
    """Candidate drop location reported by the hit-testing collaborator.

    Either a column (``index`` None means "append") or a task the pointer is
    over, in which case the drop lands at that task's index.
    """

    column_id: str | None = None
    index: int | None = Field(default=None, ge=0)
    over_task_id: str | None = None

    @classmethod
    def over_column(cls, column_id: str, index: int | None = None) -> DropTarget:
        return cls(column_id=column_id, index=index)

    @classmethod
    def over_task(cls, task_id: str) -> DropTarget:
        return cls(over_task_id=task_id)
