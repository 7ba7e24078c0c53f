"""Status lines for CLI output.

Usage:
    from localimages.cli import ui

    ui.title("Processing notes")
    ui.success("daily.md: 3 downloaded")
    ui.error("Failed to update daily.md", detail="Permission denied")
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape

from localimages.cli.console import get_console

MARK_SUCCESS = "✓"  # Checkmark
MARK_ERROR = "✗"  # Cross
MARK_WARNING = "!"
MARK_INFO = "•"  # Bullet
MARK_TITLE = "◆"  # Diamond
MARK_LINE = "│"  # Vertical line


def truncate(text: str, max_len: int) -> str:
    """Shorten ``text`` to ``max_len`` characters, ending with '...'."""
    if len(text) <= max_len:
        return text
    if max_len < 4:
        return text[:max_len]
    return text[: max_len - 3] + "..."


def title(text: str, *, console: Console | None = None) -> None:
    c = console or get_console()
    c.print(f"[cyan]{MARK_TITLE}[/] [bold]{escape(text)}[/]")


def success(text: str, *, console: Console | None = None) -> None:
    c = console or get_console()
    c.print(f"  [green]{MARK_SUCCESS}[/] {escape(text)}")


def error(
    text: str, *, detail: str | None = None, console: Console | None = None
) -> None:
    """Error line, with an optional dimmed detail line below it."""
    c = console or get_console()
    c.print(f"  [red]{MARK_ERROR}[/] {escape(text)}")
    if detail:
        c.print(f"    [dim]{MARK_LINE} {escape(detail)}[/]")


def warning(
    text: str, *, detail: str | None = None, console: Console | None = None
) -> None:
    """Warning line, with an optional dimmed detail line below it."""
    c = console or get_console()
    c.print(f"  [yellow]{MARK_WARNING}[/] {escape(text)}")
    if detail:
        c.print(f"    [dim]{MARK_LINE} {escape(detail)}[/]")


def info(text: str, *, console: Console | None = None) -> None:
    c = console or get_console()
    c.print(f"  [dim]{MARK_INFO}[/] {escape(text)}")
