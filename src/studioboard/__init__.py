"""studioboard: Kanban board ordering and status transition engine."""

from studioboard.version import get_studioboard_version

__version__ = get_studioboard_version()

__all__ = ["__version__"]
