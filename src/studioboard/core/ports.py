"""Collaborator contracts for the board engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from studioboard.core.models.entities import BoardSnapshot, MoveOperation, MoveResult


class MovePersistence(Protocol):
    """Authoritative side of a move.

    ``submit_move`` must be idempotent per ``operation_id``: a retried
    submission of an operation that was already applied answers Accepted
    without applying it again.
    """

    async def submit_move(self, operation: MoveOperation) -> MoveResult: ...


class BoardLoader(Protocol):
    """Source of the initial board snapshot."""

    async def load_board(self, board_id: str) -> BoardSnapshot: ...


class BoardStore(MovePersistence, BoardLoader, Protocol):
    """A backend that both loads boards and accepts moves."""
