"""SQLite-backed board store.

Implements both persistence ports on top of the SQLModel schema. Moves are
validated by rebuilding the board from rows and applying the operation to a
fresh ``BoardModel``; only rows whose position changed are written back.
Every answer is recorded in ``applied_moves`` so resubmissions of the same
operation are answered from the ledger.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import col, select

from studioboard.core.adapters.db.engine import create_db_engine, create_db_tables
from studioboard.core.adapters.db.schema import AppliedMove, BoardRecord, ColumnRecord, TaskRecord
from studioboard.core.board import BoardModel
from studioboard.core.config import StudioBoardConfig
from studioboard.core.errors import BoardError, BoardNotFoundError, UnknownColumnError
from studioboard.core.models.entities import BoardSnapshot, Column, MoveResult, Task
from studioboard.core.models.enums import TaskPriority
from studioboard.core.models.policies import build_status_policy

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

    from studioboard.core.models.entities import MoveOperation
    from studioboard.core.models.policies import StatusPolicy

log = logging.getLogger(__name__)


def _column_from_record(record: ColumnRecord) -> Column:
    return Column(
        id=record.id,
        title=record.title,
        status_key=record.status_key,
        color=record.color,
        limit=record.wip_limit,
        order_index=record.order_index,
    )


def _task_from_record(record: TaskRecord) -> Task:
    return Task(
        id=record.id,
        column_id=record.column_id,
        order_index=record.order_index,
        status=record.status,
        title=record.title,
        description=record.description,
        priority=record.priority,
        assignee_id=record.assignee_id,
        tags=tuple(record.tags or ()),
        due_date=record.due_date,
    )


class SqliteBoardStore:
    """Authoritative board store persisted in SQLite."""

    def __init__(self, engine: AsyncEngine, *, config: StudioBoardConfig | None = None) -> None:
        self._engine = engine
        self._session_factory = async_sessionmaker(engine, expire_on_commit=False)
        self._config = config or StudioBoardConfig()
        self._lock = asyncio.Lock()

    @classmethod
    async def open(
        cls,
        db_path: str | Path | None = None,
        *,
        config: StudioBoardConfig | None = None,
    ) -> SqliteBoardStore:
        """Create the engine, ensure tables exist and return a ready store."""
        engine = await create_db_engine(db_path)
        await create_db_tables(engine)
        return cls(engine, config=config)

    async def close(self) -> None:
        await self._engine.dispose()

    def _get_session(self) -> AsyncSession:
        return self._session_factory()

    def _policy(self, columns: Iterable[Column]) -> StatusPolicy:
        return build_status_policy(columns, self._config.board.forbidden_transitions)

    # -------------------- boards --------------------

    async def has_board(self, board_id: str) -> bool:
        async with self._get_session() as session:
            return await session.get(BoardRecord, board_id) is not None

    async def create_board(
        self,
        board_id: str,
        columns: Iterable[Column] | None = None,
        *,
        title: str = "",
    ) -> BoardSnapshot:
        """Create a board with ``columns`` (the configured defaults when omitted)."""
        layout = list(columns) if columns is not None else self._config.board.build_columns()
        if not layout:
            raise ValueError("A board needs at least one column")
        async with self._lock:
            async with self._get_session() as session:
                if await session.get(BoardRecord, board_id) is not None:
                    raise ValueError(f"Board {board_id!r} already exists")
                session.add(BoardRecord(id=board_id, title=title or board_id))
                await session.flush()
                for column in layout:
                    session.add(
                        ColumnRecord(
                            board_id=board_id,
                            id=column.id,
                            title=column.title,
                            status_key=column.status_key,
                            color=column.color,
                            wip_limit=column.limit,
                            order_index=column.order_index,
                        )
                    )
                await session.commit()
        log.info("Created board %s with %d columns", board_id, len(layout))
        return BoardSnapshot(board_id=board_id, columns=tuple(layout))

    async def load_board(self, board_id: str) -> BoardSnapshot:
        async with self._get_session() as session:
            snapshot, _ = await self._read(session, board_id)
            return snapshot

    async def _read(
        self,
        session: AsyncSession,
        board_id: str,
    ) -> tuple[BoardSnapshot, dict[str, TaskRecord]]:
        if await session.get(BoardRecord, board_id) is None:
            raise BoardNotFoundError(board_id)
        column_rows = await session.execute(
            select(ColumnRecord)
            .where(col(ColumnRecord.board_id) == board_id)
            .order_by(col(ColumnRecord.order_index).asc(), col(ColumnRecord.id).asc())
        )
        task_rows = await session.execute(
            select(TaskRecord)
            .where(col(TaskRecord.board_id) == board_id)
            .order_by(col(TaskRecord.order_index).asc(), col(TaskRecord.id).asc())
        )
        tasks = list(task_rows.scalars().all())
        snapshot = BoardSnapshot(
            board_id=board_id,
            columns=tuple(_column_from_record(row) for row in column_rows.scalars().all()),
            tasks=tuple(_task_from_record(row) for row in tasks),
        )
        return snapshot, {row.id: row for row in tasks}

    # -------------------- tasks --------------------

    async def add_task(
        self,
        board_id: str,
        title: str,
        *,
        column_id: str | None = None,
        description: str = "",
        priority: TaskPriority = TaskPriority.MEDIUM,
        assignee_id: str | None = None,
        tags: Iterable[str] = (),
        due_date: datetime | None = None,
    ) -> Task:
        """Append a task to the end of a column (the first column by default)."""
        async with self._lock:
            async with self._get_session() as session:
                snapshot, _ = await self._read(session, board_id)
                if column_id is None:
                    column_id = snapshot.ordered_columns()[0].id
                if snapshot.column(column_id) is None:
                    raise UnknownColumnError(column_id)
                resident = snapshot.tasks_in(column_id)
                step = self._config.ordering.step
                record = TaskRecord(
                    board_id=board_id,
                    column_id=column_id,
                    order_index=resident[-1].order_index + step if resident else step,
                    status=self._policy(snapshot.columns).status_for(column_id),
                    title=title,
                    description=description,
                    priority=priority,
                    assignee_id=assignee_id,
                    tags=list(tags),
                    due_date=due_date,
                )
                session.add(record)
                await session.commit()
                log.info("Added task %s to %s/%s", record.id, board_id, column_id)
                return _task_from_record(record)

    # -------------------- moves --------------------

    async def submit_move(self, operation: MoveOperation) -> MoveResult:
        async with self._lock:
            async with self._get_session() as session:
                ledger = await session.get(AppliedMove, operation.operation_id)
                if ledger is not None:
                    log.debug("Answering %s from the move ledger", operation.operation_id)
                    if ledger.accepted:
                        return MoveResult.accept()
                    return MoveResult.reject(ledger.reason or "rejected")

                task_row = await session.get(TaskRecord, operation.task_id)
                if task_row is None:
                    return MoveResult.reject(f"Unknown task: {operation.task_id!r}")
                board_id = task_row.board_id
                snapshot, rows = await self._read(session, board_id)
                board = BoardModel(
                    snapshot,
                    self._policy(snapshot.columns),
                    step=self._config.ordering.step,
                    min_gap=self._config.ordering.min_gap,
                    enforce_column_limits=self._config.board.enforce_column_limits,
                )
                try:
                    board.apply_operation(operation)
                except BoardError as exc:
                    result = MoveResult.reject(exc.message)
                    log.info("Rejected %s: %s", operation.operation_id, exc.message)
                else:
                    result = MoveResult.accept()
                    for task in board.snapshot().tasks:
                        row = rows[task.id]
                        if (row.column_id, row.order_index, row.status) == (
                            task.column_id,
                            task.order_index,
                            task.status,
                        ):
                            continue
                        row.column_id = task.column_id
                        row.order_index = task.order_index
                        row.status = task.status
                        session.add(row)

                session.add(
                    AppliedMove(
                        operation_id=operation.operation_id,
                        board_id=board_id,
                        task_id=operation.task_id,
                        from_column_id=operation.from_column_id,
                        from_index=operation.from_index,
                        to_column_id=operation.to_column_id,
                        to_index=operation.to_index,
                        accepted=result.accepted,
                        reason=result.reason,
                    )
                )
                await session.commit()
                return result
