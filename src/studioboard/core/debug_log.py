"""Debug log capture.

Python logging records from the engine are mirrored into a ring buffer so a
host application (or the CLI's ``--export-log``) can dump recent history
after a failed commit or rollback.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from studioboard.core.constants import MAX_LOG_LINES, MAX_LOG_MESSAGE_LENGTH


@dataclass(slots=True)
class LogEntry:
    """A captured log entry."""

    level: str
    logger_name: str
    message: str
    timestamp: float


log_buffer: deque[LogEntry] = deque(maxlen=MAX_LOG_LINES)


class DebugLogHandler(logging.Handler):
    """Logging handler that captures records to the debug buffer."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            if len(message) > MAX_LOG_MESSAGE_LENGTH:
                message = message[:MAX_LOG_MESSAGE_LENGTH] + "... [truncated]"
            log_buffer.append(
                LogEntry(
                    level=record.levelname,
                    logger_name=record.name,
                    message=message,
                    timestamp=record.created,
                )
            )
        except Exception:
            self.handleError(record)


_handler: DebugLogHandler | None = None


def setup_debug_logging(level: int = logging.DEBUG) -> DebugLogHandler:
    """Attach the buffer handler to the ``studioboard`` logger.

    This is idempotent - calling it multiple times returns the same handler.
    """
    global _handler

    if _handler is not None:
        return _handler

    handler = DebugLogHandler(level=level)
    handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger = logging.getLogger("studioboard")
    package_logger.addHandler(handler)
    if package_logger.level == logging.NOTSET or package_logger.level > level:
        package_logger.setLevel(level)

    _handler = handler
    logging.getLogger(__name__).debug("Debug logging initialized")
    return handler


def clear_log_buffer() -> None:
    """Clear the log buffer."""
    log_buffer.clear()


def export_logs_to_file(file_path: str | Path) -> int:
    """Export all buffered entries to a file.

    Args:
        file_path: Path to write the log file to

    Returns:
        Number of log entries written
    """
    output_path = Path(file_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    entries = list(log_buffer)
    with output_path.open("w", encoding="utf-8") as f:
        f.write("# studioboard debug log export\n")
        f.write(f"# Total entries: {len(entries)}\n")
        f.write("# " + "=" * 76 + "\n\n")
        for entry in entries:
            ts = datetime.fromtimestamp(entry.timestamp).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
            f.write(f"{ts} [{entry.level}] {entry.logger_name}: {entry.message}\n")

    return len(entries)
