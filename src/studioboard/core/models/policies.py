"""Column to status policies.

A policy is pure data plus two pure functions; it never looks at task
content. ``WorkflowStatusPolicy`` is the drop-in extension point for
workflow rules.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from studioboard.core.errors import UnknownColumnError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from studioboard.core.models.entities import Column


class StatusPolicy(Protocol):
    """Contract between columns and task statuses."""

    def status_for(self, column_id: str) -> str: ...

    def is_allowed(self, from_column_id: str, to_column_id: str) -> bool: ...


class ColumnStatusPolicy:
    """Default policy: each column maps to its status key, every move allowed."""

    def __init__(self, statuses: Mapping[str, str]) -> None:
        self._statuses = dict(statuses)

    @classmethod
    def from_columns(cls, columns: Iterable[Column]) -> ColumnStatusPolicy:
        return cls({column.id: column.status_key for column in columns})

    def status_for(self, column_id: str) -> str:
        try:
            return self._statuses[column_id]
        except KeyError:
            raise UnknownColumnError(column_id) from None

    def is_allowed(self, from_column_id: str, to_column_id: str) -> bool:
        del from_column_id, to_column_id
        return True


class WorkflowStatusPolicy(ColumnStatusPolicy):
    """Column policy that forbids an explicit set of column transitions."""

    def __init__(
        self,
        statuses: Mapping[str, str],
        forbidden: Iterable[tuple[str, str]] = (),
    ) -> None:
        super().__init__(statuses)
        self._forbidden = frozenset(forbidden)

    @classmethod
    def from_columns(
        cls,
        columns: Iterable[Column],
        forbidden: Iterable[tuple[str, str]] = (),
    ) -> WorkflowStatusPolicy:
        return cls({column.id: column.status_key for column in columns}, forbidden)

    def is_allowed(self, from_column_id: str, to_column_id: str) -> bool:
        return (from_column_id, to_column_id) not in self._forbidden


def parse_transition(rule: str) -> tuple[str, str]:
    """Parse a ``"from -> to"`` rule string."""
    source, sep, target = rule.partition("->")
    source, target = source.strip(), target.strip()
    if not sep or not source or not target:
        raise ValueError(f"Transition rule must look like 'from -> to', got {rule!r}")
    return source, target


def build_status_policy(
    columns: Iterable[Column],
    forbidden_rules: Iterable[str] = (),
) -> StatusPolicy:
    """Build the policy for a board: plain when no rules, workflow otherwise."""
    columns = list(columns)
    forbidden = [parse_transition(rule) for rule in forbidden_rules]
    if not forbidden:
        return ColumnStatusPolicy.from_columns(columns)
    return WorkflowStatusPolicy.from_columns(columns, forbidden)
