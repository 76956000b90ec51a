"""Unit tests for debug log capture."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

from studioboard.core.constants import MAX_LOG_MESSAGE_LENGTH
from studioboard.core.debug_log import (
    clear_log_buffer,
    export_logs_to_file,
    log_buffer,
    setup_debug_logging,
)

if TYPE_CHECKING:
    from pathlib import Path

pytestmark = pytest.mark.unit

logger = logging.getLogger("studioboard.tests.debug_log")


@pytest.fixture(autouse=True)
def _captured() -> None:
    setup_debug_logging()
    clear_log_buffer()


class TestLogCapture:
    """Records from studioboard loggers land in the ring buffer."""

    def test_setup_is_idempotent(self):
        assert setup_debug_logging() is setup_debug_logging()

    def test_records_are_buffered_with_metadata(self):
        logger.warning("Rolled back %s", "t1")

        entry = log_buffer[-1]
        assert entry.level == "WARNING"
        assert entry.logger_name == "studioboard.tests.debug_log"
        assert entry.message == "Rolled back t1"

    def test_oversized_messages_are_truncated(self):
        logger.info("x" * (MAX_LOG_MESSAGE_LENGTH + 1))

        message = log_buffer[-1].message
        assert message.endswith("... [truncated]")
        assert len(message) == MAX_LOG_MESSAGE_LENGTH + len("... [truncated]")

    def test_message_at_limit_is_kept(self):
        logger.info("y" * MAX_LOG_MESSAGE_LENGTH)

        assert "truncated" not in log_buffer[-1].message


class TestExport:
    """Buffered entries can be written to a file."""

    def test_export_writes_header_and_entries(self, tmp_path: Path):
        logger.info("first")
        logger.error("second")

        path = tmp_path / "logs" / "debug.log"
        count = export_logs_to_file(path)

        content = path.read_text(encoding="utf-8")
        assert count == 2
        assert "# Total entries: 2" in content
        assert "[INFO] studioboard.tests.debug_log: first" in content
        assert "[ERROR] studioboard.tests.debug_log: second" in content

    def test_export_of_empty_buffer(self, tmp_path: Path):
        assert export_logs_to_file(tmp_path / "empty.log") == 0
