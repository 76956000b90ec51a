"""Process-local authoritative board store.

Holds its own ``BoardModel`` per board and answers moves the way a remote
service would: each operation is applied at most once (keyed by
``operation_id``) and refused moves are answered with a reason instead of
an exception. Scripted failures let callers exercise retry and rollback.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import TYPE_CHECKING

from studioboard.core.board import BoardModel
from studioboard.core.errors import BoardError, BoardNotFoundError, TransientTransportError
from studioboard.core.models.entities import MoveResult

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from studioboard.core.models.entities import BoardSnapshot, MoveOperation
    from studioboard.core.models.policies import StatusPolicy

log = logging.getLogger(__name__)

type ScriptedOutcome = BaseException | MoveResult


class InMemoryBoardStore:
    """Authoritative store kept in memory; implements both persistence ports."""

    def __init__(
        self,
        snapshots: Iterable[BoardSnapshot] = (),
        *,
        policy_factory: Callable[[BoardSnapshot], StatusPolicy] | None = None,
        enforce_column_limits: bool = True,
        latency_seconds: float = 0.0,
    ) -> None:
        self._policy_factory = policy_factory
        self._enforce_column_limits = enforce_column_limits
        self._latency_seconds = latency_seconds
        self._boards: dict[str, BoardModel] = {}
        self._results: dict[str, MoveResult] = {}
        self._scripted: deque[ScriptedOutcome] = deque()
        self._lost_acks = 0
        self.submitted: list[MoveOperation] = []
        for snapshot in snapshots:
            self.add_board(snapshot)

    def add_board(self, snapshot: BoardSnapshot) -> None:
        policy = self._policy_factory(snapshot) if self._policy_factory else None
        self._boards[snapshot.board_id] = BoardModel(
            snapshot,
            policy,
            enforce_column_limits=self._enforce_column_limits,
        )

    def board(self, board_id: str) -> BoardModel:
        """The store's own copy of a board (for assertions)."""
        try:
            return self._boards[board_id]
        except KeyError:
            raise BoardNotFoundError(board_id) from None

    def script(self, *outcomes: ScriptedOutcome) -> None:
        """Queue answers for the next submissions, before anything is applied.

        Exceptions are raised as-is; ``MoveResult`` values are returned and
        remembered for their operation.
        """
        self._scripted.extend(outcomes)

    def lose_next_ack(self, count: int = 1) -> None:
        """Apply the next ``count`` moves but fail before answering."""
        self._lost_acks += count

    def applied(self, operation_id: str) -> MoveResult | None:
        return self._results.get(operation_id)

    async def load_board(self, board_id: str) -> BoardSnapshot:
        return self.board(board_id).snapshot()

    async def submit_move(self, operation: MoveOperation) -> MoveResult:
        self.submitted.append(operation)
        if self._latency_seconds > 0:
            await asyncio.sleep(self._latency_seconds)

        known = self._results.get(operation.operation_id)
        if known is not None:
            log.debug("Duplicate submission of %s answered from record", operation.operation_id)
            return known

        if self._scripted:
            outcome = self._scripted.popleft()
            if isinstance(outcome, BaseException):
                raise outcome
            self._results[operation.operation_id] = outcome
            return outcome

        result = self._apply(operation)
        self._results[operation.operation_id] = result
        if self._lost_acks > 0:
            self._lost_acks -= 1
            raise TransientTransportError(f"Acknowledgement for {operation.operation_id} lost")
        return result

    def _apply(self, operation: MoveOperation) -> MoveResult:
        board = next(
            (b for b in self._boards.values() if b.task(operation.task_id) is not None), None
        )
        if board is None:
            return MoveResult.reject(f"Unknown task: {operation.task_id!r}")
        try:
            board.apply_operation(operation)
        except BoardError as exc:
            log.info("Rejected %s: %s", operation.operation_id, exc.message)
            return MoveResult.reject(exc.message)
        return MoveResult.accept()
