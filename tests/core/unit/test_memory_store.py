from __future__ import annotations

import pytest
from tests.helpers.board import kanban_snapshot

from studioboard.core.adapters.memory import InMemoryBoardStore
from studioboard.core.errors import BoardNotFoundError, TransientTransportError
from studioboard.core.models.entities import MoveOperation, MoveResult

pytestmark = pytest.mark.unit


def _move(task_id: str = "t1", to_column_id: str = "doing", to_index: int = 0) -> MoveOperation:
    return MoveOperation(
        task_id=task_id,
        from_column_id="todo",
        from_index=0,
        to_column_id=to_column_id,
        to_index=to_index,
    )


async def test_load_board_returns_snapshot() -> None:
    store = InMemoryBoardStore([kanban_snapshot()])

    snapshot = await store.load_board("main")

    assert snapshot.ordering()["todo"] == ("t1", "t2", "t3")


async def test_load_unknown_board() -> None:
    store = InMemoryBoardStore()

    with pytest.raises(BoardNotFoundError):
        await store.load_board("nope")


async def test_submit_applies_once_per_operation_id() -> None:
    store = InMemoryBoardStore([kanban_snapshot()])
    operation = _move()

    first = await store.submit_move(operation)
    second = await store.submit_move(operation)

    assert first.accepted
    assert second == first
    assert store.board("main").revision == 1
    assert store.applied(operation.operation_id) == first


async def test_invalid_move_is_answered_with_reason() -> None:
    store = InMemoryBoardStore([kanban_snapshot()])

    result = await store.submit_move(_move(to_column_id="archive"))
    unknown = await store.submit_move(_move(task_id="ghost"))

    assert not result.accepted
    assert "archive" in (result.reason or "")
    assert unknown.reason == "Unknown task: 'ghost'"


async def test_scripted_outcomes_are_consumed_in_order() -> None:
    store = InMemoryBoardStore([kanban_snapshot()])
    store.script(TransientTransportError("flaky"), MoveResult.reject("busy"))

    with pytest.raises(TransientTransportError):
        await store.submit_move(_move())
    rejected = await store.submit_move(_move())
    accepted = await store.submit_move(_move())

    assert rejected.reason == "busy"
    assert accepted.accepted
    assert len(store.submitted) == 3
