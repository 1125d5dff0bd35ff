"""Tests for CLI logging filter, progress reporter and summary output."""

from __future__ import annotations

import io
import sys
from pathlib import Path
from types import SimpleNamespace

from loguru import logger
from rich.console import Console

from imgopt.aggregator import ResultAggregator
from imgopt.cli.console import get_console, reset_consoles
from imgopt.cli.logging_config import LoggingContext, _should_show_log
from imgopt.cli.progress import RichProgressReporter
from imgopt.cli.summary import print_summary
from imgopt.progress import CompositeReporter
from imgopt.results import Failure, FailureReason, Success


def _record(level: str, message: str, **extra) -> dict:
    return {"level": SimpleNamespace(name=level), "message": message, "extra": extra}


def _console() -> tuple[Console, io.StringIO]:
    buffer = io.StringIO()
    return Console(file=buffer, width=200, force_terminal=False), buffer


class TestConsoleFilter:
    def test_debug_never_shown(self) -> None:
        assert not _should_show_log(_record("DEBUG", "x"), verbose=True)

    def test_failures_always_shown(self) -> None:
        assert _should_show_log(_record("ERROR", "[FAIL] a.png: decode_error"), False)
        assert _should_show_log(_record("WARNING", "Interrupted"), False)

    def test_per_file_info_needs_verbose(self) -> None:
        record = _record("INFO", "[DONE] a.png -> a.jpg (0.10s)")

        assert not _should_show_log(record, verbose=False)
        assert _should_show_log(record, verbose=True)

    def test_milestones_shown_without_verbose(self) -> None:
        assert _should_show_log(_record("INFO", "Converting 3 files to jpg"), False)

    def test_third_party_info_hidden(self) -> None:
        assert not _should_show_log(_record("INFO", "loaded", name="PIL.Image"), True)


class TestLoggingContext:
    def test_suspends_and_restores_console_handler(self) -> None:
        logger.remove()
        handler_id = logger.add(io.StringIO(), level="INFO")

        ctx = LoggingContext(handler_id, verbose=False)
        with ctx:
            # Removing the same id again fails once it is gone
            try:
                logger.remove(handler_id)
                still_present = True
            except ValueError:
                still_present = False

        assert not still_present
        assert ctx.current_handler_id is not None
        assert ctx.current_handler_id != handler_id
        logger.remove()
        logger.add(sys.stderr)

    def test_none_handler_is_noop(self) -> None:
        with LoggingContext(None) as ctx:
            pass
        assert ctx.current_handler_id is None


class TestRichProgressReporter:
    def test_tracks_completed_and_failed(self) -> None:
        console, _ = _console()
        reporter = RichProgressReporter(total=2, console=console)
        aggregator = ResultAggregator(2, observer=reporter)

        with reporter:
            aggregator.record(Success(Path("a.png"), Path("out/a.jpg")))
            aggregator.record(Failure(Path("b.png"), FailureReason.DECODE_ERROR))

        task = reporter.progress.tasks[0]
        assert task.completed == 2
        assert task.fields["failed"] == 1
        assert reporter.finished

    def test_composite_fans_out(self) -> None:
        first = RichProgressReporter(total=1, console=_console()[0])
        second = RichProgressReporter(total=1, console=_console()[0])
        aggregator = ResultAggregator(1, observer=CompositeReporter(first, second))

        aggregator.record(Success(Path("a.png"), Path("out/a.jpg")))

        assert first.finished and second.finished


class TestPrintSummary:
    def test_lists_failures_with_reason(self) -> None:
        console, buffer = _console()
        aggregator = ResultAggregator(2)
        aggregator.record(Success(Path("/in/a.png"), Path("/out/a.jpg")))
        aggregator.record(
            Failure(Path("/in/b.png"), FailureReason.PERMISSION_DENIED, "read-only")
        )

        print_summary(aggregator.wait(), Path("/out"), console=console)

        text = buffer.getvalue()
        assert "Converted: 1" in text
        assert "Failed: 1" in text
        assert "b.png" in text
        assert "permission_denied: read-only" in text

    def test_cancelled_run(self) -> None:
        console, buffer = _console()
        aggregator = ResultAggregator(3)
        aggregator.record(Success(Path("/in/a.png"), Path("/out/a.jpg")))
        aggregator.mark_not_started([Path("/in/b.png"), Path("/in/c.png")])

        print_summary(aggregator.wait(), Path("/out"), console=console)

        text = buffer.getvalue()
        assert "Cancelled: 1/3" in text
        assert "Not started: 2" in text


class TestConsoles:
    def test_reset_builds_new_consoles(self) -> None:
        first = get_console()
        assert get_console() is first

        reset_consoles()

        assert get_console() is not first
