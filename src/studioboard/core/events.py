"""Domain events and event bus contracts."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Protocol
from uuid import uuid4

if TYPE_CHECKING:
    from studioboard.core.models.entities import BoardSnapshot
    from studioboard.core.models.enums import DragPhase, FailureKind


def _new_event_id() -> str:
    return uuid4().hex


def _now() -> datetime:
    return datetime.now()


class DomainEvent(Protocol):
    """Base protocol for all domain events."""

    @property
    def event_id(self) -> str: ...

    @property
    def occurred_at(self) -> datetime: ...


EventHandler = Callable[[DomainEvent], None]


class EventBus(Protocol):
    """Fan-out bus for domain events."""

    async def publish(self, event: DomainEvent) -> None:
        """Publish a single event to subscribers."""
        ...

    def publish_nowait(self, event: DomainEvent) -> None:
        """Publish from synchronous code running on the event loop thread."""
        ...

    def subscribe(self, event_type: type[DomainEvent] | None = None) -> AsyncIterator[DomainEvent]:
        """Subscribe to events (optionally filtered by type)."""
        ...

    def add_handler(
        self,
        handler: EventHandler,
        event_type: type[DomainEvent] | None = None,
    ) -> None:
        """Register a sync handler for events (renderers use this)."""
        ...

    def remove_handler(self, handler: EventHandler) -> None:
        """Remove a previously registered handler."""
        ...


@dataclass(frozen=True)
class BoardLoaded:
    board_id: str
    column_count: int
    task_count: int
    event_id: str = field(default_factory=_new_event_id)
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class BoardChanged:
    """Committed board state changed; carries the new read-only snapshot."""

    board_id: str
    revision: int
    snapshot: BoardSnapshot
    event_id: str = field(default_factory=_new_event_id)
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class TaskMoved:
    task_id: str
    from_column_id: str
    from_index: int
    to_column_id: str
    to_index: int
    from_status: str
    to_status: str
    event_id: str = field(default_factory=_new_event_id)
    occurred_at: datetime = field(default_factory=_now)

    @property
    def status_changed(self) -> bool:
        return self.from_status != self.to_status


@dataclass(frozen=True)
class DragPhaseChanged:
    task_id: str | None
    from_phase: DragPhase
    to_phase: DragPhase
    event_id: str = field(default_factory=_new_event_id)
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class DragPreviewChanged:
    """Live, uncommitted preview of the board while a task is dragged."""

    task_id: str
    column_id: str | None
    index: int | None
    snapshot: BoardSnapshot
    event_id: str = field(default_factory=_new_event_id)
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class MoveCommitted:
    operation_id: str
    task_id: str
    attempts: int
    event_id: str = field(default_factory=_new_event_id)
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class MoveRolledBack:
    """An optimistic move was not kept; ``restored`` is False when superseded."""

    operation_id: str
    task_id: str
    kind: FailureKind
    reason: str
    restored: bool
    event_id: str = field(default_factory=_new_event_id)
    occurred_at: datetime = field(default_factory=_now)
