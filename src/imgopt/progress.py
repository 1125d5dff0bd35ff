"""Observer interface for run progress.

Contract seen by every observer: ``on_outcome`` zero or more times, then
exactly one ``on_complete``, then nothing. Observers never influence
processing; they are called while the aggregator holds its lock, so they
must return quickly and must not call back into the aggregator.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from imgopt.results import ConversionOutcome, ProcessSummary


class ProgressReporter(Protocol):
    """Receives per-file events and the terminal summary."""

    def on_outcome(
        self, outcome: ConversionOutcome, completed: int, total: int
    ) -> None: ...

    def on_complete(self, summary: ProcessSummary) -> None: ...


class NullReporter:
    """Reporter that ignores everything."""

    def on_outcome(
        self, outcome: ConversionOutcome, completed: int, total: int
    ) -> None:
        pass

    def on_complete(self, summary: ProcessSummary) -> None:
        pass


class CompositeReporter:
    """Fan events out to several reporters in order."""

    def __init__(self, *reporters: ProgressReporter) -> None:
        self.reporters = list(reporters)

    def on_outcome(
        self, outcome: ConversionOutcome, completed: int, total: int
    ) -> None:
        for reporter in self.reporters:
            reporter.on_outcome(outcome, completed, total)

    def on_complete(self, summary: ProcessSummary) -> None:
        for reporter in self.reporters:
            reporter.on_complete(summary)
