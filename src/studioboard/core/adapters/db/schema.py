"""SQLModel schema for persisted boards."""

# NOTE: Avoid `from __future__ import annotations` because SQLModel evaluates
# field annotations at class creation time.

from datetime import UTC, datetime
from uuid import uuid4

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from studioboard.core.models.enums import TaskPriority


def _new_id() -> str:
    return uuid4().hex[:8]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class BoardRecord(SQLModel, table=True):
    """A persisted board."""

    __tablename__ = "boards"  # type: ignore[bad-override]

    id: str = Field(primary_key=True)
    title: str = Field(default="")
    created_at: datetime = Field(default_factory=_utc_now)


class ColumnRecord(SQLModel, table=True):
    """Workflow column of a board; ids are unique per board."""

    __tablename__ = "columns"  # type: ignore[bad-override]

    board_id: str = Field(foreign_key="boards.id", primary_key=True)
    id: str = Field(primary_key=True)
    title: str
    status_key: str
    color: str = Field(default="")
    wip_limit: int | None = Field(default=None)
    order_index: float = Field(default=0.0)


class TaskRecord(SQLModel, table=True):
    """Kanban card with its position."""

    __tablename__ = "tasks"  # type: ignore[bad-override]

    id: str = Field(default_factory=_new_id, primary_key=True)
    board_id: str = Field(foreign_key="boards.id", index=True)
    column_id: str = Field(index=True)
    order_index: float = Field(default=0.0)
    status: str = Field(index=True)
    title: str = Field(index=True)
    description: str = Field(default="")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    assignee_id: str | None = Field(default=None)
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    due_date: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class AppliedMove(SQLModel, table=True):
    """Ledger of answered move operations, keyed by operation id."""

    __tablename__ = "applied_moves"  # type: ignore[bad-override]

    operation_id: str = Field(primary_key=True)
    board_id: str = Field(foreign_key="boards.id", index=True)
    task_id: str = Field(index=True)
    from_column_id: str
    from_index: int
    to_column_id: str
    to_index: int
    accepted: bool
    reason: str | None = Field(default=None)
    applied_at: datetime = Field(default_factory=_utc_now)
