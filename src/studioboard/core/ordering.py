"""Gap-tolerant ordering for board sequences.

An ``OrderedCollection`` is an immutable, copy-on-write sequence of items that
each carry a float ``order_index``. Inserts allocate the midpoint between the
neighbours so the rest of the sequence is untouched; only when the gap is
exhausted is the whole sequence renumbered to evenly spaced multiples of
``step``. Relative order is never changed by a renumber.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol, Self

from studioboard.core.constants import MIN_ORDER_GAP, ORDER_STEP
from studioboard.core.instrumentation import increment_counter

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

log = logging.getLogger(__name__)


class Orderable(Protocol):
    """Anything with a stable id and a float position."""

    @property
    def id(self) -> str: ...

    @property
    def order_index(self) -> float: ...

    def with_order_index(self, value: float) -> Self: ...


def _sort_key(item: Orderable) -> tuple[float, str]:
    return (item.order_index, item.id)


def _renumber[T: Orderable](items: tuple[T, ...], step: float) -> tuple[T, ...]:
    return tuple(
        item.with_order_index(step * (position + 1)) for position, item in enumerate(items)
    )


class OrderedCollection[T: Orderable]:
    """Immutable ordered sequence with midpoint allocation and renumbering."""

    __slots__ = ("_items", "_min_gap", "_step")

    def __init__(
        self,
        items: Iterable[T] = (),
        *,
        step: float = ORDER_STEP,
        min_gap: float = MIN_ORDER_GAP,
    ) -> None:
        ordered = tuple(sorted(items, key=_sort_key))
        ids = [item.id for item in ordered]
        if len(set(ids)) != len(ids):
            raise ValueError("OrderedCollection items must have unique ids")
        if any(a.order_index >= b.order_index for a, b in zip(ordered, ordered[1:], strict=False)):
            ordered = _renumber(ordered, step)
        self._items = ordered
        self._step = step
        self._min_gap = min_gap

    @classmethod
    def _wrap(cls, items: tuple[T, ...], *, step: float, min_gap: float) -> OrderedCollection[T]:
        collection = cls.__new__(cls)
        collection._items = items
        collection._step = step
        collection._min_gap = min_gap
        return collection

    def _derive(self, items: tuple[T, ...]) -> OrderedCollection[T]:
        return self._wrap(items, step=self._step, min_gap=self._min_gap)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __getitem__(self, position: int) -> T:
        return self._items[position]

    def __contains__(self, item_id: object) -> bool:
        return any(item.id == item_id for item in self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OrderedCollection):
            return NotImplemented
        return self._items == other._items

    def __hash__(self) -> int:
        return hash(self._items)

    def __repr__(self) -> str:
        return f"OrderedCollection({list(self.ids())!r})"

    @property
    def items(self) -> tuple[T, ...]:
        return self._items

    def ids(self) -> tuple[str, ...]:
        return tuple(item.id for item in self._items)

    def get(self, item_id: str) -> T | None:
        return next((item for item in self._items if item.id == item_id), None)

    def index_of(self, item_id: str) -> int:
        for position, item in enumerate(self._items):
            if item.id == item_id:
                return position
        raise KeyError(item_id)

    def _fits(self, before: float | None, value: float, after: float | None) -> bool:
        if before is not None and not (before < value and value - before >= self._min_gap):
            return False
        return after is None or (value < after and after - value >= self._min_gap)

    def _allocate(
        self,
        before: float | None,
        after: float | None,
        order_hint: float | None,
    ) -> float | None:
        if order_hint is not None and self._fits(before, order_hint, after):
            return order_hint
        if before is None and after is None:
            candidate = self._step
        elif before is None:
            candidate = after - self._step
        elif after is None:
            candidate = before + self._step
        else:
            candidate = before + (after - before) / 2
        return candidate if self._fits(before, candidate, after) else None

    def insert_at(
        self,
        item: T,
        index: int,
        *,
        order_hint: float | None = None,
    ) -> OrderedCollection[T]:
        """Return a new collection with ``item`` at position ``index``.

        ``order_hint`` is used as the item's index when it still fits strictly
        between the new neighbours (rollbacks restore the exact prior value).
        """
        if item.id in self:
            raise ValueError(f"Item {item.id!r} is already in the collection")
        if not 0 <= index <= len(self._items):
            raise IndexError(f"Insert position {index} outside 0..{len(self._items)}")

        before = self._items[index - 1].order_index if index > 0 else None
        after = self._items[index].order_index if index < len(self._items) else None
        value = self._allocate(before, after, order_hint)
        if value is None:
            sequence = (*self._items[:index], item, *self._items[index:])
            increment_counter("board.ordering.renumbers", fields={"size": len(sequence)})
            log.debug(
                "Order gap exhausted at position %d; renumbering %d items", index, len(sequence)
            )
            return self._derive(_renumber(sequence, self._step))

        placed = item.with_order_index(value)
        return self._derive((*self._items[:index], placed, *self._items[index:]))

    def remove_item(self, item_id: str) -> OrderedCollection[T]:
        """Return a new collection without ``item_id``; other indices unchanged."""
        position = self.index_of(item_id)
        return self._derive(self._items[:position] + self._items[position + 1 :])

    def move(self, item_id: str, index: int) -> OrderedCollection[T]:
        """Relocate an item so it ends at ``index`` (clamped to the end)."""
        item = self._items[self.index_of(item_id)]
        remaining = self.remove_item(item_id)
        return remaining.insert_at(item, min(index, len(remaining)), order_hint=item.order_index)
