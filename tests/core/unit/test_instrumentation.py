from __future__ import annotations

import json
import logging

import pytest

from studioboard.core import instrumentation

pytestmark = pytest.mark.unit


def test_disabled_registry_collects_nothing() -> None:
    instrumentation.configure(enabled=False)
    instrumentation.reset()

    instrumentation.increment_counter("board.commit.submitted")
    with instrumentation.timed_operation("board.commit.duration_ms"):
        pass

    assert instrumentation.snapshot() == {"enabled": False, "counters": {}, "timings": {}}


def test_counters_and_timings_accumulate() -> None:
    instrumentation.configure(enabled=True)
    instrumentation.reset()

    instrumentation.increment_counter("board.commit.retries")
    instrumentation.increment_counter("board.commit.retries", amount=2)
    for _ in range(2):
        with instrumentation.timed_operation("board.commit.duration_ms"):
            pass

    data = instrumentation.snapshot()
    assert data["counters"] == {"board.commit.retries": 3}
    timing = data["timings"]["board.commit.duration_ms"]
    assert timing["count"] == 2
    assert timing["max_ms"] >= 0.0


def test_samples_are_logged_as_json(caplog: pytest.LogCaptureFixture) -> None:
    instrumentation.configure(enabled=True, log_samples=True)
    instrumentation.reset()
    try:
        with caplog.at_level(logging.INFO, logger="studioboard.core.instrumentation"):
            instrumentation.increment_counter("board.commit.accepted", fields={"task": "t1"})
    finally:
        instrumentation.configure(log_samples=False)

    payload = json.loads(caplog.records[-1].getMessage().removeprefix("instrumentation "))
    assert payload == {
        "kind": "counter",
        "name": "board.commit.accepted",
        "value": 1,
        "fields": {"task": "t1"},
    }
