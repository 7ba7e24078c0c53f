"""Shared Rich consoles for the localimages CLI.

Report output goes to stdout so it can be piped; progress and errors go to
stderr. ``NO_COLOR`` is honored by Rich itself.
"""

from __future__ import annotations

from rich.console import Console

_consoles: dict[str, Console] = {}


def get_console() -> Console:
    """Console writing to stdout."""
    if "stdout" not in _consoles:
        _consoles["stdout"] = Console(highlight=False)
    return _consoles["stdout"]


def get_stderr_console() -> Console:
    """Console writing to stderr."""
    if "stderr" not in _consoles:
        _consoles["stderr"] = Console(stderr=True, highlight=False)
    return _consoles["stderr"]


def reset_consoles() -> None:
    """Drop cached consoles so the next call binds to the current streams.

    CliRunner swaps sys.stdout per invocation; tests call this between runs.
    """
    _consoles.clear()
