"""Core domain models, events, and policies."""

from studioboard.core import events
from studioboard.core.models import entities, enums, policies

__all__ = [
    "entities",
    "enums",
    "events",
    "policies",
]
