"""Configuration loader for studioboard."""

from __future__ import annotations

import asyncio
import os
import tempfile
import tomllib
from pathlib import Path

import tomlkit
from pydantic import BaseModel, Field, field_validator

from studioboard.core.constants import (
    DEFAULT_COLUMN_TITLES,
    DEFAULT_COMMIT_TIMEOUT_SECONDS,
    DEFAULT_RETRY_DELAY_SECONDS,
    MAX_COMMIT_ATTEMPTS,
    MIN_ORDER_GAP,
    ORDER_STEP,
)
from studioboard.core.models.entities import Column, status_key_from_title
from studioboard.core.models.policies import parse_transition
from studioboard.core.paths import ensure_directories, get_config_path


def atomic_write(path: Path, content: str) -> None:
    """Write file atomically to avoid partial/corrupt writes."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        Path(tmp_path).replace(path)
    except Exception:
        Path(tmp_path).unlink(missing_ok=True)
        raise


class OrderingConfig(BaseModel):
    """Order index allocation settings."""

    step: float = Field(default=ORDER_STEP, description="Spacing between renumbered indices")
    min_gap: float = Field(
        default=MIN_ORDER_GAP,
        description="Neighbour gap below which an insert renumbers the column",
    )

    @field_validator("step", mode="before")
    @classmethod
    def validate_step(cls, value: object) -> float:
        match value:
            case int() | float() as step if step > 0:
                return float(step)
            case _:
                return ORDER_STEP

    @field_validator("min_gap", mode="before")
    @classmethod
    def validate_min_gap(cls, value: object) -> float:
        match value:
            case int() | float() as gap if gap >= 0:
                return float(gap)
            case _:
                return MIN_ORDER_GAP


class CommitConfig(BaseModel):
    """Optimistic commit and reconciliation settings."""

    max_attempts: int = Field(
        default=MAX_COMMIT_ATTEMPTS,
        description="Submission attempts per move (1 = no retry, 2 = one silent retry)",
    )
    retry_delay_seconds: float = Field(default=DEFAULT_RETRY_DELAY_SECONDS, ge=0)
    timeout_seconds: float | None = Field(
        default=DEFAULT_COMMIT_TIMEOUT_SECONDS,
        description="Per-attempt timeout for the persistence call (None = wait forever)",
    )

    @field_validator("max_attempts", mode="before")
    @classmethod
    def clamp_max_attempts(cls, value: object) -> int:
        """Clamp to 1..2; more than one silent retry is never allowed."""
        match value:
            case int() as attempts:
                return min(max(attempts, 1), MAX_COMMIT_ATTEMPTS)
            case _:
                return MAX_COMMIT_ATTEMPTS

    @field_validator("timeout_seconds", mode="before")
    @classmethod
    def validate_timeout(cls, value: object) -> float | None:
        """Non-positive timeouts mean "wait forever" (stored as 0 in TOML)."""
        match value:
            case int() | float() as seconds if seconds > 0:
                return float(seconds)
            case int() | float() | None:
                return None
            case _:
                return DEFAULT_COMMIT_TIMEOUT_SECONDS


class ColumnPreset(BaseModel):
    """Column declared in config for newly created boards."""

    id: str
    title: str
    status_key: str = ""
    color: str = ""
    limit: int | None = Field(default=None, ge=1)


def _default_columns() -> list[ColumnPreset]:
    return [
        ColumnPreset(id=status_key_from_title(title), title=title)
        for title in DEFAULT_COLUMN_TITLES
    ]


class BoardConfig(BaseModel):
    """Board layout and workflow rules."""

    default_columns: list[ColumnPreset] = Field(default_factory=_default_columns)
    enforce_column_limits: bool = Field(
        default=True, description="Reject moves into columns at their WIP limit"
    )
    forbidden_transitions: list[str] = Field(
        default_factory=list,
        description="Column transitions refused by the workflow, e.g. 'done -> to-do'",
    )

    @field_validator("forbidden_transitions")
    @classmethod
    def validate_forbidden_transitions(cls, value: list[str]) -> list[str]:
        for rule in value:
            parse_transition(rule)
        return value

    def build_columns(self) -> list[Column]:
        """Materialize presets as board columns in declared order."""
        return [
            Column(
                id=preset.id,
                title=preset.title,
                status_key=preset.status_key,
                color=preset.color,
                limit=preset.limit,
                order_index=float(position),
            )
            for position, preset in enumerate(self.default_columns)
        ]


class StudioBoardConfig(BaseModel):
    """Root configuration model."""

    ordering: OrderingConfig = Field(default_factory=OrderingConfig)
    commit: CommitConfig = Field(default_factory=CommitConfig)
    board: BoardConfig = Field(default_factory=BoardConfig)

    @classmethod
    def load(cls, config_path: Path | None = None) -> StudioBoardConfig:
        """Load configuration from TOML file or use defaults."""
        if config_path is None:
            ensure_directories()
            config_path = get_config_path()

        if config_path.exists():
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
            return cls.model_validate(data)

        return cls()

    async def save(self, path: Path) -> None:
        """Serialize current config to TOML file.

        Args:
            path: Path to write config file (created if missing)
        """
        doc = tomlkit.document()

        for section_name in ("ordering", "commit"):
            table = tomlkit.table()
            for key, value in getattr(self, section_name).model_dump().items():
                table[key] = 0 if value is None else value
            doc[section_name] = table

        board_table = tomlkit.table()
        board_table["enforce_column_limits"] = self.board.enforce_column_limits
        board_table["forbidden_transitions"] = list(self.board.forbidden_transitions)
        columns = tomlkit.aot()
        for preset in self.board.default_columns:
            column_table = tomlkit.table()
            for key, value in preset.model_dump().items():
                if value is not None:
                    column_table[key] = value
            columns.append(column_table)
        board_table["default_columns"] = columns
        doc["board"] = board_table

        content = tomlkit.dumps(doc)
        await asyncio.to_thread(atomic_write, path, content)
