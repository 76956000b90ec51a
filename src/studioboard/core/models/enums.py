"""Core domain enums."""

from __future__ import annotations

from enum import StrEnum


class TaskPriority(StrEnum):
    """Task priority levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def label(self) -> str:
        """Short display label."""
        return {
            self.LOW: "LOW",
            self.MEDIUM: "MED",
            self.HIGH: "HIGH",
            self.URGENT: "URG",
        }[self]


class DragPhase(StrEnum):
    """Phases of a drag gesture."""

    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTING = "committing"
    CANCELLED = "cancelled"


class MoveResultKind(StrEnum):
    """Authoritative answer to a submitted move."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"


class CommitOutcome(StrEnum):
    """Final state of an optimistic commit after reconciliation."""

    ACCEPTED = "accepted"
    ROLLED_BACK = "rolled_back"
    SUPERSEDED = "superseded"


class FailureKind(StrEnum):
    """Why a commit could not be kept."""

    REJECTED = "rejected"
    TRANSPORT = "transport"
