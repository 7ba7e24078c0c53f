"""Options and helpers shared by CLI commands."""

from __future__ import annotations

from pathlib import Path

import click

from localimages.cli import ui
from localimages.cli.console import get_stderr_console

VAULT_ENV = "LOCALIMAGES_VAULT"

vault_option = click.option(
    "--vault",
    "vault",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    envvar=VAULT_ENV,
    default=Path("."),
    show_default="current directory",
    help=f"Vault root directory (or set {VAULT_ENV}).",
)


class ConsoleNotifier:
    """Notifier that prints messages as info lines on stderr."""

    def __init__(self) -> None:
        self.messages: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)
        ui.info(message, console=get_stderr_console())


def parse_value(value: str) -> bool | int | float | str:
    """Interpret a command-line string as bool, int, float or str."""
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value
