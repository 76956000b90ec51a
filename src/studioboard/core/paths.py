"""XDG-compliant path helpers for studioboard data storage."""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_config_dir, user_data_dir


def get_data_dir() -> Path:
    """Get the data directory (board database, log exports)."""
    override = os.environ.get("STUDIOBOARD_DATA_DIR")
    if override:
        return Path(override).resolve()
    return Path(user_data_dir("studioboard"))


def get_config_dir() -> Path:
    """Get the config directory (config.toml)."""
    override = os.environ.get("STUDIOBOARD_CONFIG_DIR")
    if override:
        return Path(override).resolve()
    return Path(user_config_dir("studioboard"))


def get_database_path() -> Path:
    """Get the path to the SQLite board database."""
    return get_data_dir() / "studioboard.db"


def get_config_path() -> Path:
    """Get the path to the main config file."""
    return get_config_dir() / "config.toml"


def get_debug_log_path() -> Path:
    """Get the path to the debug log export file."""
    return get_data_dir() / "debug.log"


def ensure_directories() -> None:
    """Create data and config directories if missing."""
    get_data_dir().mkdir(parents=True, exist_ok=True)
    get_config_dir().mkdir(parents=True, exist_ok=True)
