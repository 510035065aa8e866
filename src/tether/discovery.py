"""Locate the agent CLI binary on the host."""

from __future__ import annotations

import os
import shutil
from collections.abc import Callable
from pathlib import Path

#: Binary name looked up on PATH, and the fallback when nothing is found.
CLI_NAME = "claude"

#: Type of the locator injected into :class:`~tether.transport.ProcessTransport`.
CliLocator = Callable[[], str]


def _candidate_paths() -> list[Path]:
    home = Path.home()
    return [
        Path("/usr/local/bin") / CLI_NAME,
        Path("/usr/bin") / CLI_NAME,
        home / ".npm-global" / "bin" / CLI_NAME,
        home / ".local" / "bin" / CLI_NAME,
        home / ".claude" / "local" / CLI_NAME,
    ]


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


def find_cli() -> str:
    """Return the path of the CLI binary.

    Probes well-known install locations first, then PATH.  Falls back to
    the bare name so the spawn itself reports a missing binary.
    """
    for path in _candidate_paths():
        if _is_executable(path):
            return str(path)

    found = shutil.which(CLI_NAME)
    if found:
        return found

    return CLI_NAME
