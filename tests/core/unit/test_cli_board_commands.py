"""CLI tests for the board commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from click.testing import CliRunner

from studioboard.cli.commands.root import cli

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def invoke(tmp_path: Path):
    """Run the CLI against a throwaway database and config file."""
    runner = CliRunner()
    base = ["--db", str(tmp_path / "board.db"), "--config", str(tmp_path / "config.toml")]

    def _invoke(*args: str):
        return runner.invoke(cli, [*base, *args])

    return _invoke


def _added_id(output: str) -> str:
    # "Added <id> to <column>: <title>"
    return output.split()[1]


def test_version_flag() -> None:
    result = CliRunner().invoke(cli, ["--version"])

    assert result.exit_code == 0
    assert result.output.startswith("studioboard ")


def test_no_subcommand_prints_help() -> None:
    result = CliRunner().invoke(cli, [])

    assert result.exit_code == 0
    assert "move" in result.output


def test_init_is_idempotent(invoke) -> None:
    first = invoke("init")
    second = invoke("init")

    assert first.exit_code == 0
    assert "Created board 'main'" in first.output
    assert "In Progress [in-progress]" in first.output
    assert second.exit_code == 0
    assert "already exists" in second.output


def test_show_unknown_board_explains_how_to_fix(invoke) -> None:
    result = invoke("show", "--board", "missing")

    assert result.exit_code == 1
    assert "Board not found: 'missing'" in result.output
    assert "studioboard init" in result.output


def test_add_and_show(invoke) -> None:
    invoke("init")
    added = invoke("add", "Write release notes", "--priority", "high", "--tag", "docs")

    assert added.exit_code == 0
    task_id = _added_id(added.output)

    shown = invoke("show")
    assert shown.exit_code == 0
    assert "To Do [to-do] (1)" in shown.output
    assert f"0. {task_id}  HIGH  Write release notes" in shown.output
    assert "(empty)" in shown.output


def test_add_to_unknown_column_fails(invoke) -> None:
    invoke("init")

    result = invoke("add", "Lost", "--column", "archive")

    assert result.exit_code == 1
    assert "Unknown column: 'archive'" in result.output


def test_move_commits_and_persists(invoke) -> None:
    invoke("init")
    first = _added_id(invoke("add", "First").output)
    second = _added_id(invoke("add", "Second").output)

    moved = invoke("move", second, "done")
    reordered = invoke("move", first, "done", "--index", "0")

    assert moved.exit_code == 0
    assert f"Moved {second} to done at 0" in moved.output
    assert reordered.exit_code == 0
    shown = invoke("show").output
    assert "To Do [to-do] (0)" in shown
    assert f"0. {first}" in shown
    assert f"1. {second}" in shown


def test_move_onto_current_position_is_a_no_op(invoke) -> None:
    invoke("init")
    task_id = _added_id(invoke("add", "Only").output)

    result = invoke("move", task_id, "to-do")

    assert result.exit_code == 0
    assert "Nothing to move." in result.output


def test_move_refused_by_workflow_rule(invoke, tmp_path: Path) -> None:
    (tmp_path / "config.toml").write_text(
        '[board]\nforbidden_transitions = ["to-do -> done"]\n', encoding="utf-8"
    )
    invoke("init")
    task_id = _added_id(invoke("add", "Skip review").output)

    result = invoke("move", task_id, "done")

    assert result.exit_code == 1
    assert "is not allowed" in result.output


def test_move_unknown_task_fails(invoke) -> None:
    invoke("init")

    result = invoke("move", "ghost", "done")

    assert result.exit_code == 1
    assert "Unknown task: 'ghost'" in result.output
