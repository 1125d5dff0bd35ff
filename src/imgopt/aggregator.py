"""Thread-safe collection of outcomes into one ProcessSummary."""

from __future__ import annotations

import threading
import time
from collections import Counter
from collections.abc import Iterable
from pathlib import Path

from loguru import logger

from imgopt.progress import NullReporter, ProgressReporter
from imgopt.results import ConversionOutcome, Failure, ProcessSummary, Success


class ResultAggregator:
    """Accumulates one outcome per submitted task and settles exactly once.

    Outcomes may arrive from any thread in any order. Counters, the failed
    path list and the observer calls are all serialized by one lock. When
    every expected task is accounted for (recorded or marked not started)
    the summary is frozen, the done event is set and the observer's
    ``on_complete`` runs. Observer errors are logged and never reach the
    caller of ``record``. Readers use ``wait()``, which blocks on the done
    event, so they never see a half-built summary.

    With ``expected == 0`` the aggregator settles on construction.
    """

    def __init__(
        self,
        expected: int,
        observer: ProgressReporter | None = None,
    ) -> None:
        if expected < 0:
            raise ValueError("expected must be >= 0")
        self.expected = expected
        self.observer: ProgressReporter = observer or NullReporter()

        self._lock = threading.Lock()
        self._done = threading.Event()
        self._seen: set[Path] = set()
        self._outputs: list[Path] = []
        self._failures: list[Failure] = []
        self._not_started: list[Path] = []
        self._success_count = 0
        self._cancelled = False
        self._started = time.perf_counter()
        self._summary: ProcessSummary | None = None

        if expected == 0:
            with self._lock:
                self._settle()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def accounted(self) -> int:
        """Outcomes recorded plus tasks marked not started."""
        with self._lock:
            return len(self._seen) + len(self._not_started)

    def record(self, outcome: ConversionOutcome) -> None:
        """Record the outcome of one task.

        Raises:
            ValueError: If the task already has an outcome.
            RuntimeError: If the summary has already settled.
        """
        with self._lock:
            self._check_open()
            if outcome.input_path in self._seen:
                raise ValueError(f"Duplicate outcome for {outcome.input_path}")
            self._seen.add(outcome.input_path)

            if isinstance(outcome, Success):
                self._success_count += 1
                self._outputs.append(outcome.output_path)
            else:
                self._failures.append(outcome)

            completed = len(self._seen) + len(self._not_started)
            try:
                self.observer.on_outcome(outcome, completed, self.expected)
            except Exception as e:
                logger.opt(exception=e).warning(
                    f"Progress observer failed on {outcome.input_path.name}"
                )

            if completed == self.expected:
                self._settle()

    def mark_not_started(self, paths: Iterable[Path]) -> None:
        """Account for tasks that were never dispatched (run cancelled)."""
        paths = list(paths)
        if not paths:
            return
        with self._lock:
            self._check_open()
            self._cancelled = True
            self._not_started.extend(paths)
            if len(self._seen) + len(self._not_started) == self.expected:
                self._settle()

    def wait(self, timeout: float | None = None) -> ProcessSummary:
        """Block until the summary has settled and return it.

        Raises:
            TimeoutError: If ``timeout`` elapses first.
        """
        if not self._done.wait(timeout):
            raise TimeoutError("Run has not completed")
        assert self._summary is not None  # Set before the event
        return self._summary

    def _check_open(self) -> None:
        if self._summary is not None:
            raise RuntimeError("Summary already settled")

    def _settle(self) -> None:
        # Caller holds self._lock
        if self._summary is not None:
            return
        reasons = Counter(f.reason for f in self._failures)
        self._summary = ProcessSummary(
            total=self.expected,
            success_count=self._success_count,
            failure_count=len(self._failures),
            failed_paths=tuple(f.input_path for f in self._failures),
            outputs=tuple(self._outputs),
            failure_reasons=dict(reasons),
            failures=tuple(self._failures),
            not_started=tuple(self._not_started),
            cancelled=self._cancelled,
            duration=time.perf_counter() - self._started,
        )
        self._done.set()
        logger.debug(
            f"Run settled: {self._summary.success_count} ok, "
            f"{self._summary.failure_count} failed, "
            f"{len(self._summary.not_started)} not started"
        )
        try:
            self.observer.on_complete(self._summary)
        except Exception as e:
            logger.opt(exception=e).warning("Progress observer failed on completion")
