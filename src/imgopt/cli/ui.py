"""Status-line helpers for CLI output.

Usage:
    from imgopt.cli import ui

    ui.title("Converting photos/ -> jpg")
    ui.error("broken.png", detail="decode_error: cannot identify image file")
"""

from __future__ import annotations

from rich.console import Console

from imgopt.cli.console import get_console

MARK_SUCCESS = "✓"
MARK_ERROR = "✗"
MARK_WARNING = "!"
MARK_INFO = "•"
MARK_TITLE = "◆"
MARK_LINE = "│"


def title(text: str, *, console: Console | None = None) -> None:
    c = console or get_console()
    c.print(f"[cyan]{MARK_TITLE}[/] [bold]{text}[/]")
    c.print()


def success(text: str, *, console: Console | None = None) -> None:
    c = console or get_console()
    c.print(f"  [green]{MARK_SUCCESS}[/] {text}")


def error(
    text: str, *, detail: str | None = None, console: Console | None = None
) -> None:
    """Print an error line, with an optional dimmed detail line below it."""
    c = console or get_console()
    c.print(f"  [red]{MARK_ERROR}[/] {text}")
    if detail:
        c.print(f"    [dim]{MARK_LINE} {detail}[/]")


def warning(
    text: str, *, detail: str | None = None, console: Console | None = None
) -> None:
    c = console or get_console()
    c.print(f"  [yellow]{MARK_WARNING}[/] {text}")
    if detail:
        c.print(f"    [dim]{MARK_LINE} {detail}[/]")


def info(text: str, *, console: Console | None = None) -> None:
    c = console or get_console()
    c.print(f"  [dim]{MARK_INFO}[/] {text}")


def summary(text: str, *, ok: bool = True, console: Console | None = None) -> None:
    """Print the closing line of a command, preceded by a blank line."""
    c = console or get_console()
    c.print()
    if ok:
        c.print(f"[green]{MARK_SUCCESS}[/] {text}")
    else:
        c.print(f"[yellow]{MARK_WARNING}[/] {text}")
