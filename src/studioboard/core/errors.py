"""Board error taxonomy.

Each error carries a machine-readable ``code`` so UI collaborators can decide
how to surface it without matching on messages.
"""

from __future__ import annotations


class BoardError(Exception):
    """Base class for all board engine errors."""

    code: str = "BOARD_ERROR"

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint


class InvalidMoveError(BoardError, ValueError):
    """A move referenced an unknown task/column or an out-of-range index."""

    code = "INVALID_MOVE"


class IllegalTransitionError(BoardError):
    """The status policy refused a column transition."""

    code = "ILLEGAL_TRANSITION"

    def __init__(
        self,
        from_column_id: str,
        to_column_id: str,
        *,
        message: str | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(
            message or f"Moving tasks from {from_column_id!r} to {to_column_id!r} is not allowed",
            hint=hint,
        )
        self.from_column_id = from_column_id
        self.to_column_id = to_column_id


class ColumnLimitReachedError(IllegalTransitionError):
    """The destination column is at its work-in-progress limit."""

    code = "COLUMN_LIMIT_REACHED"

    def __init__(self, from_column_id: str, to_column_id: str, limit: int) -> None:
        super().__init__(
            from_column_id,
            to_column_id,
            message=f"Column {to_column_id!r} is at its limit of {limit} tasks",
            hint="Finish or move a task out of the column first",
        )
        self.limit = limit


class UnknownColumnError(BoardError, LookupError):
    """A column id has no status mapping (configuration error)."""

    code = "UNKNOWN_COLUMN"

    def __init__(self, column_id: str) -> None:
        super().__init__(f"Unknown column: {column_id!r}")
        self.column_id = column_id


class BoardNotFoundError(BoardError, LookupError):
    """No board with the requested id exists in the store."""

    code = "BOARD_NOT_FOUND"

    def __init__(self, board_id: str) -> None:
        super().__init__(
            f"Board not found: {board_id!r}", hint="Run `studioboard init` to create it"
        )
        self.board_id = board_id


class ConcurrentDragError(BoardError, RuntimeError):
    """A drag was started while another one is still active."""

    code = "CONCURRENT_DRAG"


class TransientTransportError(BoardError, ConnectionError):
    """Recoverable persistence failure (timeout, dropped connection)."""

    code = "TRANSPORT_UNAVAILABLE"


__all__ = [
    "BoardError",
    "BoardNotFoundError",
    "ColumnLimitReachedError",
    "ConcurrentDragError",
    "IllegalTransitionError",
    "InvalidMoveError",
    "TransientTransportError",
    "UnknownColumnError",
]
