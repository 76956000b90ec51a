"""Board session bootstrap and dependency wiring.

``bootstrap_board`` loads a board through a ``BoardLoader``, builds the
status policy from configuration and wires the ``BoardModel``,
``MoveCommitter`` and ``DragSession`` around one event bus.

Usage:
    async with bootstrap_board(store, "main", config=config) as ctx:
        ctx.drag.pick_up(task_id)
        ctx.drag.update(DropTarget.over_column("done"))
        ctx.drag.release()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from studioboard.core.board import BoardModel
from studioboard.core.committer import MoveCommitter
from studioboard.core.config import StudioBoardConfig
from studioboard.core.drag import DragSession
from studioboard.core.events import BoardLoaded
from studioboard.core.models.policies import build_status_policy

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from studioboard.core.committer import FailureCallback
    from studioboard.core.events import DomainEvent, EventBus, EventHandler
    from studioboard.core.ports import BoardStore

log = logging.getLogger(__name__)


class InMemoryEventBus:
    """Simple async event bus with fan-out to handlers and async subscribers.

    This implementation is suitable for single-process use. Events are not
    persisted or replayed; new subscribers only receive future events.
    """

    def __init__(self) -> None:
        self._handlers: list[tuple[type[DomainEvent] | None, EventHandler]] = []
        self._queues: list[tuple[type[DomainEvent] | None, asyncio.Queue[DomainEvent]]] = []

    async def publish(self, event: DomainEvent) -> None:
        """Publish event to all matching handlers and subscribers."""
        self.publish_nowait(event)

    def publish_nowait(self, event: DomainEvent) -> None:
        """Deliver synchronously; subscriber queues that are full drop the event."""
        for filter_type, handler in list(self._handlers):
            if filter_type is None or isinstance(event, filter_type):
                try:
                    handler(event)
                except Exception:
                    log.exception("Event handler %r failed on %s", handler, type(event).__name__)

        for filter_type, queue in list(self._queues):
            if filter_type is None or isinstance(event, filter_type):
                with contextlib.suppress(asyncio.QueueFull):
                    queue.put_nowait(event)

    def add_handler(
        self,
        handler: EventHandler,
        event_type: type[DomainEvent] | None = None,
    ) -> None:
        """Register a synchronous handler for events."""
        self._handlers.append((event_type, handler))

    def remove_handler(self, handler: EventHandler) -> None:
        """Remove a previously registered handler."""
        self._handlers = [(t, h) for t, h in self._handlers if h is not handler]

    async def subscribe(
        self, event_type: type[DomainEvent] | None = None
    ) -> AsyncIterator[DomainEvent]:
        """Subscribe to events, yielding them as they arrive."""
        queue: asyncio.Queue[DomainEvent] = asyncio.Queue(maxsize=100)
        self._queues.append((event_type, queue))
        try:
            while True:
                yield await queue.get()
        finally:
            self._queues = [(t, q) for t, q in self._queues if q is not queue]


@dataclass
class BoardContext:
    """Everything a board UI needs for one session.

    Attributes:
        config: Engine configuration.
        store: Loader and authoritative move persistence.
        event_bus: Domain event bus renderers subscribe to.
        board: Committed board state.
        committer: Optimistic move committer.
        drag: Drag gesture state machine.
    """

    config: StudioBoardConfig
    store: BoardStore
    event_bus: EventBus = field(default_factory=InMemoryEventBus)

    board: BoardModel = field(init=False)
    committer: MoveCommitter = field(init=False)
    drag: DragSession = field(init=False)

    async def close(self) -> None:
        """Reconcile in-flight commits, then tear the board down."""
        self.drag.cancel()
        await self.committer.drain()
        self.board.close()


async def create_board_context(
    store: BoardStore,
    board_id: str,
    *,
    config: StudioBoardConfig | None = None,
    event_bus: EventBus | None = None,
    on_failure: FailureCallback | None = None,
) -> BoardContext:
    """Create a fully wired BoardContext (non-context-manager)."""
    config = config or StudioBoardConfig()
    ctx = BoardContext(config=config, store=store, event_bus=event_bus or InMemoryEventBus())

    snapshot = await store.load_board(board_id)
    policy = build_status_policy(snapshot.columns, config.board.forbidden_transitions)
    ctx.board = BoardModel(
        snapshot,
        policy,
        event_bus=ctx.event_bus,
        step=config.ordering.step,
        min_gap=config.ordering.min_gap,
        enforce_column_limits=config.board.enforce_column_limits,
    )
    ctx.committer = MoveCommitter(
        ctx.board,
        store,
        event_bus=ctx.event_bus,
        config=config.commit,
        on_failure=on_failure,
    )
    ctx.drag = DragSession(ctx.board, ctx.committer, event_bus=ctx.event_bus)

    await ctx.event_bus.publish(
        BoardLoaded(
            board_id=board_id,
            column_count=len(snapshot.columns),
            task_count=len(snapshot.tasks),
        )
    )
    log.info(
        "Loaded board %s (%d columns, %d tasks)",
        board_id,
        len(snapshot.columns),
        len(snapshot.tasks),
    )
    return ctx


@asynccontextmanager
async def bootstrap_board(
    store: BoardStore,
    board_id: str,
    *,
    config: StudioBoardConfig | None = None,
    event_bus: EventBus | None = None,
    on_failure: FailureCallback | None = None,
) -> AsyncIterator[BoardContext]:
    """Bootstrap a board session with all collaborators wired.

    Yields:
        Fully initialized BoardContext; pending commits are drained on exit.
    """
    ctx = await create_board_context(
        store, board_id, config=config, event_bus=event_bus, on_failure=on_failure
    )
    try:
        yield ctx
    finally:
        await ctx.close()
