"""Optimistic move commits with reconciliation.

``MoveCommitter.commit`` applies a move to the local ``BoardModel`` right
away and forwards it to the persistence collaborator in the background.
Forwards run strictly in commit order. A rejected or undeliverable move is
rolled back to where the task stood when it was committed, unless a later
commit for the same task is still pending, in which case that later commit
decides the final position and inherits the rollback target.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from studioboard.core.config import CommitConfig
from studioboard.core.constants import MAX_COMMIT_ATTEMPTS
from studioboard.core.errors import BoardError, TransientTransportError
from studioboard.core.events import MoveCommitted, MoveRolledBack
from studioboard.core.instrumentation import increment_counter, timed_operation
from studioboard.core.models.enums import CommitOutcome, FailureKind

if TYPE_CHECKING:
    from studioboard.core.board import BoardModel
    from studioboard.core.events import EventBus
    from studioboard.core.models.entities import MoveOperation, MoveResult
    from studioboard.core.ports import MovePersistence

log = logging.getLogger(__name__)

_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    TransientTransportError,
    TimeoutError,
    ConnectionError,
)


@dataclass(frozen=True)
class CommitRetryPolicy:
    """Retry behavior for forwarding a move."""

    max_attempts: int = MAX_COMMIT_ATTEMPTS
    delay_seconds: float = 0.0
    timeout_seconds: float | None = None

    def normalized(self) -> CommitRetryPolicy:
        attempts = min(max(1, self.max_attempts), MAX_COMMIT_ATTEMPTS)
        delay = max(0.0, self.delay_seconds)
        timeout = self.timeout_seconds
        if timeout is not None and timeout <= 0:
            timeout = None
        return CommitRetryPolicy(
            max_attempts=attempts, delay_seconds=delay, timeout_seconds=timeout
        )

    @classmethod
    def from_config(cls, config: CommitConfig) -> CommitRetryPolicy:
        return cls(
            max_attempts=config.max_attempts,
            delay_seconds=config.retry_delay_seconds,
            timeout_seconds=config.timeout_seconds,
        ).normalized()


@dataclass(frozen=True)
class CommitFailure:
    """What the UI is told when an optimistic move is not kept."""

    operation: MoveOperation
    kind: FailureKind
    reason: str
    attempts: int
    restored: bool


FailureCallback = Callable[[CommitFailure], None]


@dataclass(frozen=True, slots=True)
class _RestorePoint:
    column_id: str
    index: int
    order_index: float


@dataclass(slots=True, eq=False)
class _PendingMove:
    operation: MoveOperation
    restore: _RestorePoint


@dataclass(frozen=True, slots=True)
class _Delivery:
    result: MoveResult | None
    reason: str
    attempts: int


async def _maybe_retry_wait(delay_seconds: float) -> None:
    if delay_seconds > 0:
        await asyncio.sleep(delay_seconds)


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class MoveCommitter:
    """Apply moves optimistically and reconcile with the authoritative store."""

    def __init__(
        self,
        board: BoardModel,
        persistence: MovePersistence,
        *,
        event_bus: EventBus | None = None,
        config: CommitConfig | None = None,
        retry_policy: CommitRetryPolicy | None = None,
        on_failure: FailureCallback | None = None,
    ) -> None:
        self._board = board
        self._persistence = persistence
        self._events = event_bus
        if retry_policy is None:
            retry_policy = CommitRetryPolicy.from_config(config or CommitConfig())
        self._policy = retry_policy.normalized()
        self._on_failure = on_failure
        self._pending: dict[str, deque[_PendingMove]] = {}
        self._tail: asyncio.Task[CommitOutcome] | None = None
        self._inflight: set[asyncio.Task[CommitOutcome]] = set()

    @property
    def retry_policy(self) -> CommitRetryPolicy:
        return self._policy

    @property
    def pending_count(self) -> int:
        return sum(len(queue) for queue in self._pending.values())

    def has_pending(self, task_id: str) -> bool:
        return bool(self._pending.get(task_id))

    def commit(self, operation: MoveOperation) -> asyncio.Task[CommitOutcome]:
        """Apply ``operation`` locally and schedule its forward.

        Must be called from a running event loop. Synchronous board errors
        (``InvalidMoveError``, ``IllegalTransitionError``) propagate before
        anything is scheduled.

        Raises:
            RuntimeError: no running event loop; the board is left untouched.
        """
        loop = asyncio.get_running_loop()
        column_id, index = self._board.locate(operation.task_id)
        current = self._board.task(operation.task_id)
        assert current is not None
        restore = _RestorePoint(column_id=column_id, index=index, order_index=current.order_index)

        self._board.move_task(operation.task_id, operation.to_column_id, operation.to_index)

        pending = _PendingMove(operation=operation, restore=restore)
        self._pending.setdefault(operation.task_id, deque()).append(pending)
        increment_counter("board.commit.submitted")
        log.debug(
            "Committed %s optimistically (task %s -> %s[%d])",
            operation.operation_id,
            operation.task_id,
            operation.to_column_id,
            operation.to_index,
        )

        forward = loop.create_task(
            self._forward(pending, self._tail),
            name=f"studioboard-commit-{operation.operation_id}",
        )
        self._tail = forward
        self._inflight.add(forward)
        forward.add_done_callback(self._inflight.discard)
        return forward

    async def drain(self) -> None:
        """Wait until every scheduled forward has been reconciled."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def _forward(
        self,
        pending: _PendingMove,
        previous: asyncio.Task[CommitOutcome] | None,
    ) -> CommitOutcome:
        if previous is not None and not previous.done():
            await asyncio.wait({previous})

        operation = pending.operation
        with timed_operation("board.commit.duration_ms"):
            delivery = await self._deliver(operation)

        if delivery.result is not None and delivery.result.accepted:
            self._settle(pending)
            increment_counter("board.commit.accepted")
            log.debug(
                "Move %s accepted after %d attempt(s)", operation.operation_id, delivery.attempts
            )
            if self._events is not None:
                await self._events.publish(
                    MoveCommitted(
                        operation_id=operation.operation_id,
                        task_id=operation.task_id,
                        attempts=delivery.attempts,
                    )
                )
            return CommitOutcome.ACCEPTED

        kind = FailureKind.REJECTED if delivery.result is not None else FailureKind.TRANSPORT
        return await self._roll_back(pending, kind, delivery)

    async def _deliver(self, operation: MoveOperation) -> _Delivery:
        attempt = 0
        while True:
            attempt += 1
            try:
                result = await self._submit(operation)
            except _TRANSIENT_ERRORS as exc:
                if attempt >= self._policy.max_attempts:
                    log.warning(
                        "Move %s failed after %d attempt(s): %s",
                        operation.operation_id,
                        attempt,
                        _describe(exc),
                    )
                    return _Delivery(result=None, reason=_describe(exc), attempts=attempt)
                increment_counter("board.commit.retries", fields={"reason": type(exc).__name__})
                log.info(
                    "Retrying move %s after transient failure: %s",
                    operation.operation_id,
                    _describe(exc),
                )
                await _maybe_retry_wait(self._policy.delay_seconds)
                continue
            except Exception as exc:
                log.exception("Move %s could not be submitted", operation.operation_id)
                return _Delivery(result=None, reason=_describe(exc), attempts=attempt)
            return _Delivery(result=result, reason=result.reason or "", attempts=attempt)

    async def _submit(self, operation: MoveOperation) -> MoveResult:
        timeout = self._policy.timeout_seconds
        if timeout is None:
            return await self._persistence.submit_move(operation)
        return await asyncio.wait_for(self._persistence.submit_move(operation), timeout=timeout)

    def _settle(self, pending: _PendingMove) -> deque[_PendingMove]:
        task_id = pending.operation.task_id
        queue = self._pending[task_id]
        queue.remove(pending)
        if not queue:
            del self._pending[task_id]
        return queue

    async def _roll_back(
        self,
        pending: _PendingMove,
        kind: FailureKind,
        delivery: _Delivery,
    ) -> CommitOutcome:
        operation = pending.operation
        remaining = self._settle(pending)
        increment_counter("board.commit.rollbacks", fields={"kind": kind.value})

        if remaining:
            remaining[0].restore = pending.restore
            restored = False
            outcome = CommitOutcome.SUPERSEDED
            log.info(
                "Move %s %s; task %s left to pending %s",
                operation.operation_id,
                kind.value,
                operation.task_id,
                remaining[0].operation.operation_id,
            )
        else:
            restored = self._restore(operation.task_id, pending.restore)
            outcome = CommitOutcome.ROLLED_BACK
            log.warning(
                "Move %s %s (%s); task %s rolled back to %s[%d]",
                operation.operation_id,
                kind.value,
                delivery.reason,
                operation.task_id,
                pending.restore.column_id,
                pending.restore.index,
            )

        if self._events is not None:
            await self._events.publish(
                MoveRolledBack(
                    operation_id=operation.operation_id,
                    task_id=operation.task_id,
                    kind=kind,
                    reason=delivery.reason,
                    restored=restored,
                )
            )
        if self._on_failure is not None:
            self._on_failure(
                CommitFailure(
                    operation=operation,
                    kind=kind,
                    reason=delivery.reason,
                    attempts=delivery.attempts,
                    restored=restored,
                )
            )
        return outcome

    def _restore(self, task_id: str, restore: _RestorePoint) -> bool:
        if self._board.closed:
            return False
        try:
            index = min(restore.index, len(self._board.tasks_in(restore.column_id)))
            self._board.move_task(
                task_id,
                restore.column_id,
                index,
                check_policy=False,
                order_hint=restore.order_index,
            )
        except BoardError:
            log.exception("Could not restore task %s to column %s", task_id, restore.column_id)
            return False
        return True
