"""CLI wrapper: Start the API with auto-reload."""

from __future__ import annotations

import os
import sys

from cli._runner import run


def main() -> None:
    port = os.getenv("PORT", "8000")
    log_level = os.getenv("APP_LOG_LEVEL", "info").lower()
    run(
        [
            sys.executable,
            "-m",
            "uvicorn",
            "policy_graph.main:app",
            "--reload",
            "--reload-dir",
            "policy_graph",
            "--port",
            port,
            "--log-level",
            log_level,
            *sys.argv[1:],
        ]
    )
