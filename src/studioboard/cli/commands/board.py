"""Board commands backed by the SQLite store."""

from __future__ import annotations

import asyncio
import sys
from typing import TYPE_CHECKING, Any

import click

from studioboard.core.config import StudioBoardConfig
from studioboard.core.constants import DEFAULT_BOARD_ID
from studioboard.core.errors import BoardError, UnknownColumnError
from studioboard.core.models.enums import CommitOutcome, TaskPriority
from studioboard.core.paths import get_database_path

if TYPE_CHECKING:
    from studioboard.core.adapters.db import SqliteBoardStore
    from studioboard.core.committer import CommitFailure
    from studioboard.core.models.entities import BoardSnapshot, MoveOperation, Task

board_option = click.option(
    "--board",
    "board_id",
    default=DEFAULT_BOARD_ID,
    show_default=True,
    help="Board id",
)


def _config(obj: dict[str, Any]) -> StudioBoardConfig:
    return StudioBoardConfig.load(obj.get("config_path"))


async def _open_store(obj: dict[str, Any], config: StudioBoardConfig) -> SqliteBoardStore:
    from studioboard.core.adapters.db import SqliteBoardStore

    return await SqliteBoardStore.open(obj.get("db_path") or get_database_path(), config=config)


def _fail(error: BoardError) -> None:
    click.secho(f"Error: {error.message}", fg="red", err=True)
    if error.hint:
        click.echo(f"Hint: {error.hint}", err=True)
    sys.exit(1)


@click.command()
@board_option
@click.option("--title", default="", help="Display title for the board")
@click.pass_obj
def init(obj: dict[str, Any], board_id: str, title: str) -> None:
    """Create a board with the configured default columns."""
    config = _config(obj)

    async def _run() -> BoardSnapshot | None:
        store = await _open_store(obj, config)
        try:
            if await store.has_board(board_id):
                return None
            return await store.create_board(board_id, title=title)
        finally:
            await store.close()

    snapshot = asyncio.run(_run())
    if snapshot is None:
        click.secho(f"Board {board_id!r} already exists.", fg="yellow")
        return

    click.secho(f"Created board {board_id!r}", fg="green")
    for column in snapshot.ordered_columns():
        limit = f" (limit {column.limit})" if column.limit else ""
        click.echo(f"  - {column.title} [{column.id}]{limit}")


@click.command()
@click.argument("title")
@board_option
@click.option("--column", "column_id", default=None, help="Column id (first column if omitted)")
@click.option("--description", default="", help="Task description")
@click.option(
    "--priority",
    type=click.Choice([priority.value for priority in TaskPriority]),
    default=TaskPriority.MEDIUM.value,
    show_default=True,
)
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.option("--assignee", "assignee_id", default=None, help="Assignee id")
@click.pass_obj
def add(
    obj: dict[str, Any],
    title: str,
    board_id: str,
    column_id: str | None,
    description: str,
    priority: str,
    tags: tuple[str, ...],
    assignee_id: str | None,
) -> None:
    """Append a task to a column."""
    config = _config(obj)

    async def _run() -> Task:
        store = await _open_store(obj, config)
        try:
            return await store.add_task(
                board_id,
                title,
                column_id=column_id,
                description=description,
                priority=TaskPriority(priority),
                assignee_id=assignee_id,
                tags=tags,
            )
        finally:
            await store.close()

    try:
        task = asyncio.run(_run())
    except BoardError as error:
        _fail(error)
        return
    click.secho(f"Added {task.id} to {task.column_id}: {task.title}", fg="green")


@click.command()
@board_option
@click.pass_obj
def show(obj: dict[str, Any], board_id: str) -> None:
    """Print the board column by column."""
    config = _config(obj)

    async def _run() -> BoardSnapshot:
        store = await _open_store(obj, config)
        try:
            return await store.load_board(board_id)
        finally:
            await store.close()

    try:
        snapshot = asyncio.run(_run())
    except BoardError as error:
        _fail(error)
        return

    for column in snapshot.ordered_columns():
        tasks = snapshot.tasks_in(column.id)
        limit = f"/{column.limit}" if column.limit else ""
        click.secho(f"{column.title} [{column.status_key}] ({len(tasks)}{limit})", bold=True)
        if not tasks:
            click.echo("  (empty)")
        for position, task in enumerate(tasks):
            click.echo(f"  {position}. {task.id}  {task.priority.label:<4}  {task.title}")


@click.command()
@click.argument("task_id")
@click.argument("column_id")
@board_option
@click.option(
    "--index",
    type=click.IntRange(min=0),
    default=None,
    help="Final position in the column; appends when omitted",
)
@click.pass_obj
def move(
    obj: dict[str, Any],
    task_id: str,
    column_id: str,
    board_id: str,
    index: int | None,
) -> None:
    """Drag a task to another position and commit it."""
    from studioboard.core.bootstrap import bootstrap_board
    from studioboard.core.models.entities import DropTarget

    config = _config(obj)
    failures: list[CommitFailure] = []

    async def _run() -> tuple[MoveOperation | None, CommitOutcome | None]:
        store = await _open_store(obj, config)
        try:
            async with bootstrap_board(
                store, board_id, config=config, on_failure=failures.append
            ) as ctx:
                if ctx.board.column(column_id) is None:
                    raise UnknownColumnError(column_id)
                ctx.drag.pick_up(task_id)
                ctx.drag.update(DropTarget.over_column(column_id, index))
                operation = ctx.drag.release()
                if operation is None or ctx.drag.last_commit is None:
                    return operation, None
                return operation, await ctx.drag.last_commit
        finally:
            await store.close()

    try:
        operation, outcome = asyncio.run(_run())
    except BoardError as error:
        _fail(error)
        return

    if operation is None:
        click.secho("Nothing to move.", fg="yellow")
        return
    if outcome == CommitOutcome.ACCEPTED:
        click.secho(
            f"Moved {operation.task_id} to {operation.to_column_id} at {operation.to_index}",
            fg="green",
        )
        return

    reason = failures[-1].reason if failures else "unknown failure"
    click.secho(f"Move was rolled back: {reason}", fg="red", err=True)
    sys.exit(1)
