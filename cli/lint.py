"""CLI wrappers: ruff lint and format over the project sources."""

from __future__ import annotations

import sys

from cli._runner import run

SOURCE_DIRS = ("policy_graph", "cli", "tests", "scripts")


def main() -> None:
    """Lint; pass ``--fix`` to apply safe fixes."""
    run([sys.executable, "-m", "ruff", "check", *SOURCE_DIRS, *sys.argv[1:]])


def format_main() -> None:
    """Format in place; pass ``--check`` to only report."""
    run([sys.executable, "-m", "ruff", "format", *SOURCE_DIRS, *sys.argv[1:]])
