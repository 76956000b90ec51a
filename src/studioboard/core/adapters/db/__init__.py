"""SQLite persistence for boards."""

from __future__ import annotations

from studioboard.core.adapters.db.store import SqliteBoardStore

__all__ = ["SqliteBoardStore"]
