"""CLI entry point for studioboard."""

from __future__ import annotations

import sys

if sys.version_info < (3, 12):  # noqa: UP036
    print("Error: studioboard requires Python 3.12 or higher.")
    sys.exit(1)

from studioboard.cli.commands.root import cli  # noqa: E402


def main() -> None:
    """Run the studioboard command line."""
    cli()


if __name__ == "__main__":
    main()
