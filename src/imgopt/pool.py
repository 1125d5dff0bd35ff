"""Bounded worker pool that drives conversions and feeds the aggregator."""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from loguru import logger

from imgopt.aggregator import ResultAggregator
from imgopt.constants import DEFAULT_WORKERS
from imgopt.converter import ConversionOptions, Converter
from imgopt.formats import TargetFormat
from imgopt.results import (
    ConversionOutcome,
    Failure,
    FailureReason,
    ProcessSummary,
    Success,
)
from imgopt.utils.fs import remove_quietly
from imgopt.utils.text import format_error_message


class CancelToken:
    """Cooperative cancellation flag shared between a run and its caller.

    Setting it stops new dispatches; conversions already running finish.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class WorkerPool:
    """Run one conversion per task with at most ``workers`` in flight.

    Concurrency is bounded twice: an ``asyncio.Semaphore`` gates dispatch
    and a ``ThreadPoolExecutor`` of the same size runs the blocking Pillow
    work. Every submitted task yields exactly one outcome for the
    aggregator, or is reported as not started if the run was cancelled
    before it was dispatched. A single failing file never stops the pool.
    """

    def __init__(
        self,
        converter: Converter,
        target: TargetFormat | str,
        output_dir: Path,
        options: ConversionOptions | None = None,
        workers: int = DEFAULT_WORKERS,
        cancel_token: CancelToken | None = None,
        file_timeout: float | None = None,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        if file_timeout is not None and file_timeout <= 0:
            raise ValueError("file_timeout must be > 0")
        self.converter = converter
        self.target = target
        self.output_dir = Path(output_dir)
        self.options = options or ConversionOptions()
        self.workers = workers
        self.cancel_token = cancel_token or CancelToken()
        self.file_timeout = file_timeout

    async def run(
        self, tasks: Sequence[Path], aggregator: ResultAggregator
    ) -> ResultAggregator:
        """Process every task and return once the aggregator has settled.

        Args:
            tasks: Input files, typically from ``discover_files``
            aggregator: Created with ``expected == len(tasks)``

        Returns:
            The same aggregator, already settled
        """
        if aggregator.expected != len(tasks):
            raise ValueError(
                f"Aggregator expects {aggregator.expected} outcomes "
                f"but {len(tasks)} tasks were given"
            )
        if not tasks:
            return aggregator

        logger.info(
            f"Converting {len(tasks)} files to {self.target} with {self.workers} workers"
        )
        semaphore = asyncio.Semaphore(self.workers)
        not_started: list[Path] = []
        executor = ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="imgopt-worker"
        )

        async def process_with_limit(path: Path) -> None:
            async with semaphore:
                if self.cancel_token.cancelled:
                    not_started.append(path)
                    return
                await self._dispatch(executor, path, aggregator)

        try:
            await asyncio.gather(*(process_with_limit(p) for p in tasks))
        finally:
            await asyncio.to_thread(executor.shutdown, wait=True)

        if not_started:
            logger.warning(f"Cancelled: {len(not_started)} files not started")
            aggregator.mark_not_started(not_started)
        return aggregator

    def run_sync(
        self, tasks: Sequence[Path], aggregator: ResultAggregator
    ) -> ProcessSummary:
        """Blocking wrapper around ``run`` for callers without a loop."""
        asyncio.run(self.run(tasks, aggregator))
        return aggregator.wait()

    async def _dispatch(
        self, executor: ThreadPoolExecutor, path: Path, aggregator: ResultAggregator
    ) -> None:
        """Convert one file and record its outcome.

        The timeout clock starts when a worker thread picks the file up, so
        time spent queued behind a straggler never counts against it. A
        timed-out conversion keeps its slot until its thread returns, which
        keeps dispatch in step with free threads.
        """
        loop = asyncio.get_running_loop()
        started = asyncio.Event()

        logger.info(f"[START] {path.name}")
        future = asyncio.wrap_future(
            executor.submit(self._convert_one, path, loop, started)
        )
        await started.wait()
        start = time.perf_counter()

        timed_out = False
        try:
            outcome = await asyncio.wait_for(
                asyncio.shield(future), timeout=self.file_timeout
            )
        except asyncio.TimeoutError:
            timed_out = True
            outcome = Failure(
                input_path=path,
                reason=FailureReason.TIMEOUT,
                message=f"conversion exceeded {self.file_timeout}s",
            )

        elapsed = time.perf_counter() - start
        if isinstance(outcome, Success):
            logger.info(f"[DONE] {path.name} -> {outcome.output_path.name} ({elapsed:.2f}s)")
        else:
            logger.error(
                f"[FAIL] {path.name}: {outcome.reason.value}: {outcome.message} "
                f"({elapsed:.2f}s)"
            )
        aggregator.record(outcome)

        if timed_out:
            _discard_late_output(await future)

    def _convert_one(
        self, path: Path, loop: asyncio.AbstractEventLoop, started: asyncio.Event
    ) -> ConversionOutcome:
        loop.call_soon_threadsafe(started.set)
        # Converters should not raise, but a faulty one must not kill the run
        try:
            return self.converter.convert(
                path, self.target, self.output_dir, self.options
            )
        except Exception as e:
            logger.opt(exception=e).debug(f"Converter raised for {path}")
            return Failure(
                input_path=path,
                reason=FailureReason.UNEXPECTED,
                message=format_error_message(e),
            )


def _discard_late_output(outcome: ConversionOutcome) -> None:
    """Delete the output of a conversion that finished after its timeout."""
    if isinstance(outcome, Success) and remove_quietly(outcome.output_path):
        logger.debug(f"Removed late output {outcome.output_path}")
