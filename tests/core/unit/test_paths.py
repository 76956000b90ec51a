"""Tests for XDG path helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from studioboard.core.paths import (
    ensure_directories,
    get_config_dir,
    get_config_path,
    get_data_dir,
    get_database_path,
    get_debug_log_path,
)

if TYPE_CHECKING:
    from pathlib import Path


def test_derived_paths_from_overrides(monkeypatch, tmp_path: Path) -> None:
    data_dir = tmp_path / "data"
    config_dir = tmp_path / "config"

    monkeypatch.setenv("STUDIOBOARD_DATA_DIR", str(data_dir))
    monkeypatch.setenv("STUDIOBOARD_CONFIG_DIR", str(config_dir))

    assert get_data_dir() == data_dir.resolve()
    assert get_config_dir() == config_dir.resolve()
    assert get_database_path() == data_dir.resolve() / "studioboard.db"
    assert get_debug_log_path() == data_dir.resolve() / "debug.log"
    assert get_config_path() == config_dir.resolve() / "config.toml"


def test_ensure_directories_creates_both(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("STUDIOBOARD_DATA_DIR", str(tmp_path / "a" / "data"))
    monkeypatch.setenv("STUDIOBOARD_CONFIG_DIR", str(tmp_path / "b" / "config"))

    ensure_directories()

    assert get_data_dir().is_dir()
    assert get_config_dir().is_dir()
