"""Final run summary printed by ``imgopt convert``."""

from __future__ import annotations

from pathlib import Path

from rich.console import Console

from imgopt.cli import ui
from imgopt.cli.console import get_console
from imgopt.results import ProcessSummary
from imgopt.utils.fs import format_duration


def print_summary(
    summary: ProcessSummary,
    output_dir: Path,
    copied: list[Path] | None = None,
    errors_dir: Path | None = None,
    console: Console | None = None,
) -> None:
    c = console or get_console()

    duration = format_duration(summary.duration)
    if summary.cancelled:
        ui.summary(
            f"Cancelled: {summary.processed}/{summary.total} files processed ({duration})",
            ok=False,
            console=c,
        )
    else:
        ui.summary(
            f"Done: {summary.total} files ({duration})",
            ok=summary.failure_count == 0,
            console=c,
        )
    c.print()

    ui.info(f"Converted: {summary.success_count}", console=c)
    ui.info(f"Failed: {summary.failure_count}", console=c)
    if summary.not_started:
        ui.info(f"Not started: {len(summary.not_started)}", console=c)
    ui.info(f"Output: {output_dir}", console=c)

    if summary.failures:
        c.print()
        for failure in summary.failures:
            ui.error(
                failure.input_path.name,
                detail=f"{failure.reason.value}: {failure.message} ({failure.input_path})",
                console=c,
            )

    if copied:
        c.print()
        ui.warning(f"Copied {len(copied)} failed file(s) to {errors_dir}", console=c)
