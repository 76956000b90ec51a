"""Optional in-process counters and timings for engine hotspots.

Disabled by default; set ``STUDIOBOARD_INSTRUMENTATION=1`` (or call
``configure(enabled=True)``) to collect. ``STUDIOBOARD_INSTRUMENTATION_LOG=1``
additionally logs every sample as a JSON line.
"""

from __future__ import annotations

import json
import logging
import os
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

_ENABLED_VALUES = frozenset({"1", "true", "yes", "on"})


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _ENABLED_VALUES


@dataclass(slots=True)
class _Timing:
    count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    def add(self, duration_ms: float) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.max_ms = max(self.max_ms, duration_ms)

    def to_dict(self) -> dict[str, float | int]:
        return {
            "count": self.count,
            "total_ms": self.total_ms,
            "avg_ms": self.total_ms / self.count if self.count else 0.0,
            "max_ms": self.max_ms,
        }


@dataclass(slots=True)
class _Registry:
    enabled: bool
    log_samples: bool
    counters: dict[str, int] = field(default_factory=dict)
    timings: dict[str, _Timing] = field(default_factory=dict)


_registry = _Registry(
    enabled=_env_flag("STUDIOBOARD_INSTRUMENTATION"),
    log_samples=_env_flag("STUDIOBOARD_INSTRUMENTATION_LOG"),
)


def configure(*, enabled: bool | None = None, log_samples: bool | None = None) -> None:
    """Update runtime instrumentation flags."""
    if enabled is not None:
        _registry.enabled = enabled
    if log_samples is not None:
        _registry.log_samples = log_samples


def reset() -> None:
    """Clear all collected counters and timings."""
    _registry.counters.clear()
    _registry.timings.clear()


def snapshot() -> dict[str, Any]:
    """Return a copy of current aggregates."""
    return {
        "enabled": _registry.enabled,
        "counters": dict(_registry.counters),
        "timings": {name: timing.to_dict() for name, timing in _registry.timings.items()},
    }


def _log_sample(kind: str, name: str, value: float, fields: dict[str, Any] | None) -> None:
    if not _registry.log_samples:
        return
    payload: dict[str, Any] = {"kind": kind, "name": name, "value": value}
    if fields:
        payload["fields"] = fields
    logger.info("instrumentation %s", json.dumps(payload, sort_keys=True, default=str))


def increment_counter(
    name: str,
    *,
    amount: int = 1,
    fields: dict[str, Any] | None = None,
) -> None:
    """Increment a named counter if instrumentation is enabled."""
    if not _registry.enabled:
        return
    _registry.counters[name] = _registry.counters.get(name, 0) + amount
    _log_sample("counter", name, amount, fields)


@contextmanager
def timed_operation(name: str, *, fields: dict[str, Any] | None = None) -> Iterator[None]:
    """Measure a block and record its duration if enabled."""
    if not _registry.enabled:
        yield
        return
    started_at = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - started_at) * 1000.0
        _registry.timings.setdefault(name, _Timing()).add(elapsed_ms)
        _log_sample("timing", name, elapsed_ms, fields)


__all__ = [
    "configure",
    "increment_counter",
    "reset",
    "snapshot",
    "timed_operation",
]
