"""End-to-end conversion run: discovery, pool, aggregation, failure copy."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from imgopt.aggregator import ResultAggregator
from imgopt.allocator import OutputNameAllocator
from imgopt.constants import DEFAULT_ERRORS_DIR, DEFAULT_WORKERS
from imgopt.converter import ConversionOptions, Converter, PillowConverter
from imgopt.discovery import discover_files
from imgopt.exceptions import ConfigurationError
from imgopt.formats import TargetFormat, parse_target_format
from imgopt.pool import CancelToken, WorkerPool
from imgopt.postprocess import copy_failed_files
from imgopt.progress import ProgressReporter
from imgopt.results import ProcessSummary
from imgopt.utils.fs import ensure_dir


@dataclass
class RunPlan:
    """Everything fixed before the first conversion starts."""

    root: Path
    target: TargetFormat
    output_dir: Path
    errors_dir: Path
    tasks: list[Path] = field(default_factory=list)


def default_output_dir(root: Path, target: TargetFormat) -> Path:
    """``<root>/<format>``, e.g. ``photos/webp``."""
    return Path(root) / target.value


def prepare_run(
    root: Path,
    target: TargetFormat | str,
    recursive: bool = False,
    output_dir: Path | None = None,
    errors_dir: Path | None = None,
) -> RunPlan:
    """Validate the request, discover inputs and create the output directory.

    The output and errors directories are excluded from discovery so a
    recursive rerun does not pick up its own results.

    Raises:
        UnsupportedFormatError: Target format is not png, jpg or webp.
        DiscoveryError: ``root`` is missing or unreadable.
        ConfigurationError: The output directory cannot be created.
    """
    fmt = parse_target_format(target)
    root = Path(root).expanduser()
    out = Path(output_dir).expanduser() if output_dir else default_output_dir(root, fmt)
    errors = Path(errors_dir).expanduser() if errors_dir else root / DEFAULT_ERRORS_DIR

    tasks = discover_files(root, recursive=recursive, exclude=(out, errors))

    try:
        ensure_dir(out)
    except OSError as e:
        raise ConfigurationError(f"Cannot create output directory {out}: {e}") from e

    logger.debug(f"Planned {len(tasks)} task(s): {root} -> {out}")
    return RunPlan(
        root=root.resolve(),
        target=fmt,
        output_dir=out.resolve(),
        errors_dir=errors,
        tasks=tasks,
    )


async def execute_run(
    plan: RunPlan,
    workers: int = DEFAULT_WORKERS,
    options: ConversionOptions | None = None,
    reporter: ProgressReporter | None = None,
    cancel_token: CancelToken | None = None,
    file_timeout: float | None = None,
    converter: Converter | None = None,
) -> ProcessSummary:
    """Convert every task of ``plan`` and return the settled summary.

    A fresh ``OutputNameAllocator`` is created per run unless a converter
    (with its own allocator) is supplied.
    """
    if converter is None:
        converter = PillowConverter(OutputNameAllocator())
    aggregator = ResultAggregator(len(plan.tasks), observer=reporter)
    pool = WorkerPool(
        converter,
        plan.target,
        plan.output_dir,
        options=options,
        workers=workers,
        cancel_token=cancel_token,
        file_timeout=file_timeout,
    )
    await pool.run(plan.tasks, aggregator)
    return aggregator.wait()


def run_conversion(
    root: Path,
    target: TargetFormat | str = TargetFormat.JPG,
    recursive: bool = False,
    workers: int = DEFAULT_WORKERS,
    options: ConversionOptions | None = None,
    output_dir: Path | None = None,
    reporter: ProgressReporter | None = None,
    cancel_token: CancelToken | None = None,
    file_timeout: float | None = None,
    copy_failed: bool = False,
    errors_dir: Path | None = None,
    converter: Converter | None = None,
) -> ProcessSummary:
    """Blocking one-call entry point for library users and tests.

    Example:
        >>> summary = run_conversion(Path("photos"), "webp", workers=4)
        >>> summary.success_count, summary.failed_paths
    """
    plan = prepare_run(
        root, target, recursive=recursive, output_dir=output_dir, errors_dir=errors_dir
    )
    summary = asyncio.run(
        execute_run(
            plan,
            workers=workers,
            options=options,
            reporter=reporter,
            cancel_token=cancel_token,
            file_timeout=file_timeout,
            converter=converter,
        )
    )
    if copy_failed and summary.failed_paths:
        copy_failed_files(summary.failed_paths, plan.errors_dir)
    return summary
