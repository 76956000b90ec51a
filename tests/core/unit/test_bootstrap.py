"""Tests for board session wiring and the in-memory event bus."""

from __future__ import annotations

import asyncio
import logging

import pytest

from studioboard.core.adapters.memory import InMemoryBoardStore
from studioboard.core.bootstrap import InMemoryEventBus, bootstrap_board, create_board_context
from studioboard.core.config import BoardConfig, StudioBoardConfig
from studioboard.core.errors import BoardNotFoundError, IllegalTransitionError
from studioboard.core.events import (
    BoardChanged,
    BoardLoaded,
    DomainEvent,
    MoveCommitted,
    TaskMoved,
)
from studioboard.core.models.entities import DropTarget
from studioboard.core.models.enums import CommitOutcome, DragPhase
from tests.helpers.board import kanban_snapshot

pytestmark = pytest.mark.core


class TestInMemoryEventBus:
    async def test_handlers_receive_matching_events(self) -> None:
        bus = InMemoryEventBus()
        everything: list[DomainEvent] = []
        loaded: list[DomainEvent] = []
        bus.add_handler(everything.append)
        bus.add_handler(loaded.append, BoardLoaded)

        event = BoardLoaded(board_id="main", column_count=3, task_count=6)
        await bus.publish(event)
        bus.publish_nowait(
            BoardChanged(board_id="main", revision=1, snapshot=kanban_snapshot())
        )

        assert len(everything) == 2
        assert loaded == [event]

    def test_removed_handler_is_not_called(self) -> None:
        bus = InMemoryEventBus()
        seen: list[DomainEvent] = []

        def handler(event: DomainEvent) -> None:
            seen.append(event)

        bus.add_handler(handler)
        bus.remove_handler(handler)

        bus.publish_nowait(BoardLoaded(board_id="main", column_count=0, task_count=0))

        assert seen == []

    def test_failing_handler_does_not_stop_fan_out(self, caplog: pytest.LogCaptureFixture) -> None:
        bus = InMemoryEventBus()
        seen: list[DomainEvent] = []

        def explode(_event: DomainEvent) -> None:
            raise RuntimeError("renderer crashed")

        bus.add_handler(explode)
        bus.add_handler(seen.append)

        with caplog.at_level(logging.ERROR, logger="studioboard.core.bootstrap"):
            bus.publish_nowait(BoardLoaded(board_id="main", column_count=0, task_count=0))

        assert len(seen) == 1
        assert "renderer crashed" in caplog.text

    async def test_subscribe_filters_by_type(self) -> None:
        bus = InMemoryEventBus()
        stream = bus.subscribe(BoardLoaded)
        first = asyncio.ensure_future(anext(stream))
        await asyncio.sleep(0)

        bus.publish_nowait(BoardChanged(board_id="main", revision=1, snapshot=kanban_snapshot()))
        bus.publish_nowait(BoardLoaded(board_id="main", column_count=3, task_count=6))

        received = await asyncio.wait_for(first, timeout=1)
        assert isinstance(received, BoardLoaded)
        await stream.aclose()


async def test_bootstrap_wires_one_event_bus(
    event_bus: InMemoryEventBus, recorded_events: list[DomainEvent]
) -> None:
    store = InMemoryBoardStore([kanban_snapshot()])

    async with bootstrap_board(store, "main", event_bus=event_bus) as ctx:
        ctx.drag.pick_up("t1")
        ctx.drag.update(DropTarget.over_column("done"))
        ctx.drag.release()
        assert ctx.drag.phase == DragPhase.IDLE

    assert ctx.board.closed
    assert ctx.committer.pending_count == 0
    assert ctx.drag.last_commit is not None
    assert ctx.drag.last_commit.result() == CommitOutcome.ACCEPTED
    kinds = [type(event) for event in recorded_events]
    assert kinds[0] is BoardLoaded
    assert TaskMoved in kinds
    assert kinds[-1] is MoveCommitted
    assert store.board("main").locate("t1") == ("done", 2)


async def test_forbidden_transitions_come_from_config() -> None:
    store = InMemoryBoardStore([kanban_snapshot()])
    config = StudioBoardConfig(board=BoardConfig(forbidden_transitions=["done -> todo"]))

    ctx = await create_board_context(store, "main", config=config)
    try:
        ctx.drag.pick_up("t5")
        ctx.drag.update(DropTarget.over_column("todo", 0))
        with pytest.raises(IllegalTransitionError):
            ctx.drag.release()
        assert ctx.board.locate("t5") == ("done", 0)
    finally:
        await ctx.close()
    assert store.submitted == []


async def test_unknown_board_fails_to_bootstrap() -> None:
    with pytest.raises(BoardNotFoundError):
        async with bootstrap_board(InMemoryBoardStore(), "main"):
            pass
