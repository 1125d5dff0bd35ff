"""Command-line interface for imgopt."""

from __future__ import annotations

import asyncio
import signal
import sys
from contextlib import nullcontext
from pathlib import Path

import click
from loguru import logger

from imgopt.cli import ui
from imgopt.cli.commands.config import config
from imgopt.cli.console import get_console, get_stderr_console
from imgopt.cli.logging_config import LoggingContext, print_version, setup_logging
from imgopt.cli.progress import RichProgressReporter
from imgopt.cli.summary import print_summary
from imgopt.config import ConfigManager, ImgoptConfig
from imgopt.converter import ConversionOptions
from imgopt.exceptions import ConfigurationError, DiscoveryError
from imgopt.formats import parse_target_format
from imgopt.pipeline import RunPlan, default_output_dir, execute_run, prepare_run
from imgopt.pool import CancelToken
from imgopt.postprocess import copy_failed_files, reconcile
from imgopt.progress import ProgressReporter
from imgopt.results import ProcessSummary

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_FAILURES = 2  # --strict and at least one file failed
EXIT_CANCELLED = 130


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--version",
    "-v",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit.",
)
def app() -> None:
    """imgopt - batch image converter (png, jpg, webp)."""


app.add_command(config)


@app.command()
@click.argument("input_dir", type=click.Path(path_type=Path))
@click.option(
    "--format",
    "-f",
    "fmt",
    default=None,
    help="Target format: png, jpg or webp. [default: jpg]",
)
@click.option(
    "--recursive/--no-recursive",
    "-r",
    default=None,
    help="Descend into subdirectories.",
)
@click.option("--workers", "-w", type=int, default=None, help="Parallel conversions.")
@click.option(
    "--quality",
    "-q",
    "webp_quality",
    type=int,
    default=None,
    help="WebP quality 1-100. [default: 80]",
)
@click.option("--jpeg-quality", type=int, default=None, help="JPEG quality 1-100.")
@click.option(
    "--max-dimension",
    type=int,
    default=None,
    help="Downscale images to fit this size. [default: 1440]",
)
@click.option(
    "--no-limit/--limit",
    "no_limit",
    default=None,
    help="Keep original dimensions (skip downscaling).",
)
@click.option(
    "--output",
    "-o",
    "output_dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Output directory. [default: INPUT_DIR/<format>]",
)
@click.option(
    "--copy-failed/--no-copy-failed",
    default=None,
    help="Copy failed originals into INPUT_DIR/errors.",
)
@click.option(
    "--timeout",
    "file_timeout",
    type=float,
    default=None,
    help="Per-file timeout in seconds.",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to configuration file.",
)
@click.option("--strict", is_flag=True, help="Exit with status 2 if any file failed.")
@click.option("--verbose", is_flag=True, help="Show per-file progress lines.")
@click.option("--no-progress", is_flag=True, help="Disable the progress bar.")
def convert(
    input_dir: Path,
    fmt: str | None,
    recursive: bool | None,
    workers: int | None,
    webp_quality: int | None,
    jpeg_quality: int | None,
    max_dimension: int | None,
    no_limit: bool | None,
    output_dir: Path | None,
    copy_failed: bool | None,
    file_timeout: float | None,
    config_path: Path | None,
    strict: bool,
    verbose: bool,
    no_progress: bool,
) -> None:
    """Convert every image in INPUT_DIR to one format."""
    try:
        if fmt is not None:
            fmt = parse_target_format(fmt).value
        manager = ConfigManager()
        manager.load(config_path)
        manager.merge_cli_args(
            convert__format=fmt,
            convert__recursive=recursive,
            convert__webp_quality=webp_quality,
            convert__jpeg_quality=jpeg_quality,
            convert__max_dimension=max_dimension,
            convert__no_limit=no_limit,
            batch__workers=workers,
            batch__file_timeout=file_timeout,
            output__dir=str(output_dir) if output_dir else None,
            output__copy_failed=copy_failed,
        )
    except ConfigurationError as e:
        ui.error("Configuration error", detail=str(e))
        sys.exit(EXIT_ERROR)

    cfg = manager.config
    console_handler_id, log_file = setup_logging(
        verbose=verbose,
        log_dir=cfg.log.dir,
        log_level=cfg.log.level,
        rotation=cfg.log.rotation,
        retention=cfg.log.retention,
    )
    if manager.config_path:
        logger.debug(f"Loaded config from {manager.config_path}")
    if log_file:
        logger.debug(f"Logging to {log_file}")

    try:
        plan = prepare_run(
            input_dir,
            cfg.convert.format,
            recursive=cfg.convert.recursive,
            output_dir=Path(cfg.output.dir) if cfg.output.dir else None,
            errors_dir=input_dir / cfg.output.errors_dir,
        )
    except (ConfigurationError, DiscoveryError) as e:
        ui.error(str(e))
        sys.exit(EXIT_ERROR)

    ui.title(f"Converting {plan.root} -> {plan.target.value}")
    if not plan.tasks:
        ui.warning("No supported images found")

    show_progress = (
        not no_progress and bool(plan.tasks) and get_stderr_console().is_terminal
    )
    cancel_token = CancelToken()
    reporter_cm = (
        RichProgressReporter(total=len(plan.tasks)) if show_progress else nullcontext()
    )
    logging_cm = (
        LoggingContext(console_handler_id, verbose) if show_progress else nullcontext()
    )
    with logging_cm, reporter_cm as reporter:
        summary = asyncio.run(_run_with_signals(plan, cfg, cancel_token, reporter))

    copied: list[Path] = []
    if cfg.output.copy_failed and summary.failed_paths:
        copied = copy_failed_files(summary.failed_paths, plan.errors_dir)

    print_summary(summary, plan.output_dir, copied=copied, errors_dir=plan.errors_dir)

    if summary.cancelled:
        sys.exit(EXIT_CANCELLED)
    if strict and summary.failure_count:
        sys.exit(EXIT_FAILURES)


async def _run_with_signals(
    plan: RunPlan,
    cfg: ImgoptConfig,
    cancel_token: CancelToken,
    reporter: ProgressReporter | None,
) -> ProcessSummary:
    """Run the plan; Ctrl-C stops new dispatches instead of killing workers."""
    loop = asyncio.get_running_loop()
    handler_installed = False
    try:
        loop.add_signal_handler(signal.SIGINT, _interrupt, cancel_token)
        handler_installed = True
    except (NotImplementedError, RuntimeError, ValueError):
        pass  # Windows, or not the main thread

    options = ConversionOptions(
        webp_quality=cfg.convert.webp_quality,
        jpeg_quality=cfg.convert.jpeg_quality,
        max_dimension=cfg.convert.max_dimension,
        no_limit=cfg.convert.no_limit,
    )
    try:
        return await execute_run(
            plan,
            workers=cfg.batch.workers,
            options=options,
            reporter=reporter,
            cancel_token=cancel_token,
            file_timeout=cfg.batch.file_timeout,
        )
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


def _interrupt(cancel_token: CancelToken) -> None:
    if not cancel_token.cancelled:
        logger.warning("Interrupted: finishing running conversions, skipping the rest")
    cancel_token.cancel()


@app.command()
@click.argument("input_dir", type=click.Path(path_type=Path))
@click.option("--format", "-f", "fmt", default="jpg", help="Format of the outputs.")
@click.option(
    "--output",
    "-o",
    "output_dir",
    type=click.Path(path_type=Path),
    default=None,
    help="Directory holding the outputs. [default: INPUT_DIR/<format>]",
)
@click.option("--recursive", "-r", is_flag=True, help="Descend into subdirectories.")
@click.option("--strict", is_flag=True, help="Exit with status 2 if anything is missing.")
def verify(
    input_dir: Path, fmt: str, output_dir: Path | None, recursive: bool, strict: bool
) -> None:
    """List images in INPUT_DIR that have no converted output."""
    setup_logging(verbose=False)
    try:
        target = parse_target_format(fmt)
        out = output_dir or default_output_dir(input_dir, target)
        report = reconcile(input_dir, out, recursive=recursive)
    except (ConfigurationError, DiscoveryError) as e:
        ui.error(str(e))
        sys.exit(EXIT_ERROR)

    console = get_console()
    for path in report.missing:
        ui.error(f"Missing: {path.name}", detail=str(path), console=console)
    for path in report.orphaned:
        ui.warning(f"No matching input: {path.name}", detail=str(path), console=console)

    ui.summary(
        f"{len(report.matched)} converted, {len(report.missing)} missing, "
        f"{len(report.orphaned)} orphaned",
        ok=report.complete,
        console=console,
    )
    if strict and not report.complete:
        sys.exit(EXIT_FAILURES)
