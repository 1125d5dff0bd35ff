"""Rich progress display driven by aggregator events."""

from __future__ import annotations

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)

from imgopt.cli.console import get_stderr_console
from imgopt.results import ConversionOutcome, ProcessSummary


class RichProgressReporter:
    """ProgressReporter that advances a Rich progress bar.

    Use as a context manager around the run so the bar owns the terminal
    only while conversions are in flight:

        with RichProgressReporter(total=len(plan.tasks)) as reporter:
            summary = await execute_run(plan, reporter=reporter)
    """

    def __init__(self, total: int, console: Console | None = None) -> None:
        self.total = total
        self.console = console or get_stderr_console()
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.fields[filename]:<30}"),
            BarColumn(),
            TaskProgressColumn(),
            TextColumn("[red]{task.fields[failed]} failed"),
            TimeElapsedColumn(),
            console=self.console,
            transient=True,
        )
        self._task: TaskID = self.progress.add_task(
            "Converting", total=total, filename="Converting", failed=0
        )
        self._failed = 0
        self.finished = False

    def __enter__(self) -> RichProgressReporter:
        self.progress.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.progress.stop()

    def on_outcome(
        self, outcome: ConversionOutcome, completed: int, total: int
    ) -> None:
        if not outcome.ok:
            self._failed += 1
        name = outcome.input_path.name
        if len(name) > 30:
            name = name[:27] + "..."
        self.progress.update(
            self._task, completed=completed, filename=name, failed=self._failed
        )

    def on_complete(self, summary: ProcessSummary) -> None:
        self.progress.update(
            self._task, completed=summary.total, filename="Done", failed=self._failed
        )
        self.finished = True
