"""Pytest fixtures for studioboard tests."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from hypothesis import Phase, Verbosity, settings

_TEST_BASE_DIR = Path(tempfile.mkdtemp(prefix="studioboard-tests-"))
os.environ["STUDIOBOARD_DATA_DIR"] = str(_TEST_BASE_DIR / "data")
os.environ["STUDIOBOARD_CONFIG_DIR"] = str(_TEST_BASE_DIR / "config")

if TYPE_CHECKING:
    from collections.abc import Generator

    from studioboard.core.bootstrap import InMemoryEventBus
    from studioboard.core.events import DomainEvent


settings.register_profile(
    "ci",
    max_examples=100,
    deadline=None,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
)
settings.register_profile(
    "dev",
    max_examples=20,
    deadline=500,
)
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    deadline=None,
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))


@pytest.fixture(autouse=True)
def _reset_instrumentation() -> Generator[None, None, None]:
    """Keep counters from leaking between tests."""
    from studioboard.core import instrumentation

    previous = instrumentation.snapshot()
    yield
    instrumentation.configure(enabled=bool(previous["enabled"]))
    instrumentation.reset()


@pytest.fixture
def event_bus() -> InMemoryEventBus:
    """Create an in-memory event bus."""
    from studioboard.core.bootstrap import InMemoryEventBus

    return InMemoryEventBus()


@pytest.fixture
def recorded_events(event_bus: InMemoryEventBus) -> list[DomainEvent]:
    """Every event published on ``event_bus``, in order."""
    events: list[DomainEvent] = []
    event_bus.add_handler(events.append)
    return events
