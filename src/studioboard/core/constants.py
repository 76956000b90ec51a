"""Engine-wide constants."""

from __future__ import annotations

from typing import Final

# Spacing used for fresh and renumbered order indices.
ORDER_STEP: Final = 1024.0
# Neighbour gap below which an insert forces a renumber.
MIN_ORDER_GAP: Final = 1e-6

# Default workflow, mirrors the dashboard's demo board.
DEFAULT_COLUMN_TITLES: Final = ("To Do", "In Progress", "Review", "Done")
DEFAULT_BOARD_ID: Final = "main"

# "At most one silent retry" on transient transport failures.
MAX_COMMIT_ATTEMPTS: Final = 2
DEFAULT_COMMIT_TIMEOUT_SECONDS: Final = 10.0
DEFAULT_RETRY_DELAY_SECONDS: Final = 0.25

MAX_LOG_MESSAGE_LENGTH: Final = 4000
MAX_LOG_LINES: Final = 2000
