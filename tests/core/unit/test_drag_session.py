"""Tests for the drag gesture state machine."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest
from tests.helpers.board import build_snapshot, kanban_snapshot

from studioboard.core.adapters.memory import InMemoryBoardStore
from studioboard.core.board import BoardModel
from studioboard.core.committer import MoveCommitter
from studioboard.core.drag import DragSession, DragState
from studioboard.core.errors import ConcurrentDragError, IllegalTransitionError, InvalidMoveError
from studioboard.core.events import DragPhaseChanged, DragPreviewChanged
from studioboard.core.models.entities import DropTarget
from studioboard.core.models.enums import CommitOutcome, DragPhase
from studioboard.core.models.policies import WorkflowStatusPolicy

if TYPE_CHECKING:
    from studioboard.core.bootstrap import InMemoryEventBus
    from studioboard.core.events import DomainEvent

pytestmark = pytest.mark.core


@pytest.fixture
def board() -> BoardModel:
    return BoardModel(kanban_snapshot())


@pytest.fixture
def session(board: BoardModel) -> DragSession:
    return DragSession(board)


def test_state_transition_table() -> None:
    state = DragState(dragged_task_id="t1")

    dragging = state.transition("pick_up")
    assert dragging.phase == DragPhase.DRAGGING
    assert dragging.active
    assert dragging.transition("update").phase == DragPhase.DRAGGING
    assert dragging.transition("release").phase == DragPhase.COMMITTING
    assert dragging.transition("cancel").phase == DragPhase.CANCELLED
    assert dragging.transition("release").transition("done") == DragState()
    assert state.transition("release") == state


def test_pick_up_captures_origin(session: DragSession) -> None:
    state = session.pick_up("t2")

    assert state.phase == DragPhase.DRAGGING
    assert (state.origin_column_id, state.origin_index) == ("todo", 1)
    assert (state.current_column_id, state.current_index) == ("todo", 1)


def test_pick_up_while_dragging_is_rejected(session: DragSession) -> None:
    session.pick_up("t1")

    with pytest.raises(ConcurrentDragError):
        session.pick_up("t2")

    assert session.state.dragged_task_id == "t1"


def test_pick_up_unknown_task(session: DragSession) -> None:
    with pytest.raises(InvalidMoveError):
        session.pick_up("ghost")

    assert session.phase == DragPhase.IDLE


def test_update_before_pick_up_is_invalid(session: DragSession) -> None:
    with pytest.raises(InvalidMoveError, match="No drag"):
        session.update(DropTarget.over_column("done"))


def test_preview_over_column_appends_without_touching_board(
    board: BoardModel, session: DragSession
) -> None:
    before = board.snapshot()
    session.pick_up("t1")

    preview = session.update(DropTarget.over_column("done"))

    assert preview.ordering()["done"] == ("t5", "t6", "t1")
    assert preview.ordering()["todo"] == ("t2", "t3")
    assert preview.task("t1").status == "done"
    assert board.snapshot() == before
    assert (session.state.current_column_id, session.state.current_index) == ("done", 2)


def test_preview_over_task_takes_its_index(session: DragSession) -> None:
    session.pick_up("t1")

    preview = session.update(DropTarget.over_task("t4"))

    assert preview.ordering()["doing"] == ("t1", "t4")
    assert session.state.current_index == 0


def test_preview_within_column(session: DragSession) -> None:
    session.pick_up("t3")

    preview = session.update(DropTarget.over_column("todo", 0))

    assert preview.ordering()["todo"] == ("t3", "t1", "t2")


def test_update_over_nothing_clears_target(board: BoardModel, session: DragSession) -> None:
    session.pick_up("t1")
    session.update(DropTarget.over_column("done"))

    preview = session.update(None)

    assert preview == board.snapshot()
    assert not session.state.has_target
    assert session.release() is None
    assert session.phase == DragPhase.IDLE


def test_unknown_column_target_resolves_to_nothing(session: DragSession) -> None:
    session.pick_up("t1")

    session.update(DropTarget.over_column("archive"))

    assert not session.state.has_target


def test_release_onto_origin_cancels(board: BoardModel, session: DragSession) -> None:
    before = board.snapshot()
    session.pick_up("t3")
    session.update(DropTarget.over_column("todo"))

    assert session.release() is None
    assert board.snapshot() == before


def test_cancel_returns_to_idle_with_board_untouched(
    board: BoardModel,
    event_bus: InMemoryEventBus,
    recorded_events: list[DomainEvent],
) -> None:
    session = DragSession(board, event_bus=event_bus)
    before = board.snapshot()
    session.pick_up("t1")
    session.update(DropTarget.over_column("done"))

    session.cancel()

    assert session.phase == DragPhase.IDLE
    assert board.snapshot() == before
    phases = [
        (event.from_phase, event.to_phase)
        for event in recorded_events
        if isinstance(event, DragPhaseChanged)
    ]
    assert phases == [
        (DragPhase.IDLE, DragPhase.DRAGGING),
        (DragPhase.DRAGGING, DragPhase.CANCELLED),
        (DragPhase.CANCELLED, DragPhase.IDLE),
    ]
    previews = [event for event in recorded_events if isinstance(event, DragPreviewChanged)]
    assert len(previews) == 1
    assert previews[0].snapshot.ordering()["done"] == ("t5", "t6", "t1")


def test_release_without_committer_returns_operation(session: DragSession) -> None:
    session.pick_up("t1")
    session.update(DropTarget.over_column("doing", 1))

    operation = session.release()

    assert operation is not None
    assert (operation.from_column_id, operation.from_index) == ("todo", 0)
    assert (operation.to_column_id, operation.to_index) == ("doing", 1)
    assert session.phase == DragPhase.IDLE


async def test_release_commits_through_committer(board: BoardModel) -> None:
    store = InMemoryBoardStore([kanban_snapshot()])
    committer = MoveCommitter(board, store)
    session = DragSession(board, committer)

    session.pick_up("t1")
    session.update(DropTarget.over_column("done"))
    operation = session.release()

    assert operation is not None
    assert session.phase == DragPhase.IDLE
    assert board.locate("t1") == ("done", 2)
    assert session.last_commit is not None
    assert await session.last_commit == CommitOutcome.ACCEPTED
    assert store.board("main").snapshot().ordering() == board.snapshot().ordering()


async def test_release_refused_by_policy_reraises_after_idle() -> None:
    snapshot = build_snapshot({"todo": ["t1"], "done": ["t2"]})
    policy = WorkflowStatusPolicy.from_columns(snapshot.columns, [("done", "todo")])
    board = BoardModel(snapshot, policy)
    session = DragSession(board, MoveCommitter(board, InMemoryBoardStore([snapshot])))

    session.pick_up("t2")
    session.update(DropTarget.over_column("todo"))
    with pytest.raises(IllegalTransitionError):
        session.release()

    assert session.phase == DragPhase.IDLE
    assert board.locate("t2") == ("done", 0)


async def test_release_discards_invalid_move(
    board: BoardModel, caplog: pytest.LogCaptureFixture
) -> None:
    committer = MoveCommitter(board, InMemoryBoardStore([kanban_snapshot()]))
    session = DragSession(board, committer)
    session.pick_up("t1")
    session.update(DropTarget.over_column("done"))
    board.close()

    with caplog.at_level(logging.WARNING, logger="studioboard.core.drag"):
        assert session.release() is None

    assert session.phase == DragPhase.IDLE
    assert "Discarding drag" in caplog.text
