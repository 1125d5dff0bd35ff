"""Logging configuration for the imgopt CLI.

Everything goes through loguru:
- a stderr console handler showing warnings, failures and milestones
- an optional rotating file handler with the full DEBUG trail
- standard-library loggers of Pillow and friends routed into loguru
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from click import Context
from loguru import logger

from imgopt import __version__

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <5} | {module}:{line: <3} | {message}"

# Third-party loggers to intercept and route to loguru
INTERCEPTED_LOGGERS = [
    "PIL",
    "PIL.Image",
    "PIL.PngImagePlugin",
    "PIL.TiffImagePlugin",
    "pillow_heif",
    "asyncio",
    "concurrent.futures",
]

# INFO messages shown on the console without --verbose
_MILESTONES = ("Converting", "Copied", "Cancelled")


class LoggingContext:
    """Temporarily remove the console handler while a Rich display is live.

    Usage:
        with LoggingContext(console_handler_id, verbose):
            ...  # progress bar owns the terminal
    """

    def __init__(self, console_handler_id: int | None, verbose: bool = False) -> None:
        self.verbose = verbose
        self._handler_id = console_handler_id
        self._suspended = False

    @property
    def current_handler_id(self) -> int | None:
        return self._handler_id

    def __enter__(self) -> LoggingContext:
        if self._handler_id is not None and not self._suspended:
            try:
                logger.remove(self._handler_id)
                self._suspended = True
            except ValueError:
                pass  # Already removed
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._suspended:
            self._handler_id = _add_console_handler(self.verbose)
            self._suspended = False


class InterceptHandler(logging.Handler):
    """Forward standard-library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        logger.bind(
            name=record.name,
            module=record.module,
            function=record.funcName,
            line=record.lineno,
        ).opt(exception=record.exc_info).log(level, record.getMessage())


def _add_console_handler(verbose: bool) -> int:
    return logger.add(
        sys.stderr,
        level="INFO",
        format=CONSOLE_FORMAT,
        filter=lambda record: _should_show_log(record, verbose),
    )


def setup_logging(
    verbose: bool,
    log_dir: str | None = None,
    log_level: str = "DEBUG",
    rotation: str = "10 MB",
    retention: str = "7 days",
    quiet: bool = False,
) -> tuple[int | None, Path | None]:
    """Configure loguru handlers for a CLI invocation.

    Args:
        verbose: Show per-file ``[START]``/``[DONE]`` lines on the console.
        log_dir: Directory for log files. Supports ~ expansion.
            Overridden by the IMGOPT_LOG_DIR environment variable.
        log_level: Level for the file handler.
        rotation: Log file rotation size.
        retention: Log file retention period.
        quiet: Disable console logging (file logging still applies).

    Returns:
        Tuple of (console_handler_id, log_file_path). The log file path is
        None when file logging is disabled.
    """
    logger.remove()

    console_handler_id: int | None = None
    if not quiet:
        console_handler_id = _add_console_handler(verbose)

    env_log_dir = os.environ.get("IMGOPT_LOG_DIR")
    if env_log_dir:
        log_dir = env_log_dir

    log_file_path: Path | None = None
    if log_dir:
        log_path = Path(log_dir).expanduser()
        log_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        log_file_path = log_path / f"imgopt_{timestamp}.log"
        logger.add(
            log_file_path,
            level=log_level,
            rotation=rotation,
            retention=retention,
            format=FILE_FORMAT,
            enqueue=True,  # Worker threads log concurrently
        )

    _setup_log_interception()
    return console_handler_id, log_file_path


def _setup_log_interception() -> None:
    """Route third-party stdlib loggers to loguru at WARNING+."""
    intercept_handler = InterceptHandler()
    for logger_name in INTERCEPTED_LOGGERS:
        stdlib_logger = logging.getLogger(logger_name)
        stdlib_logger.handlers.clear()
        stdlib_logger.addHandler(intercept_handler)
        stdlib_logger.propagate = False
        stdlib_logger.setLevel(logging.WARNING)


def _should_show_log(record: Any, verbose: bool) -> bool:
    """Console filter.

    DEBUG never reaches the console. Warnings and errors (including every
    ``[FAIL]`` line) always do. Other INFO lines need ``verbose`` unless
    they are run milestones.
    """
    level = record["level"].name
    if level == "DEBUG":
        return False
    if level in ("WARNING", "ERROR", "CRITICAL"):
        return True
    if record["extra"].get("name"):
        # Intercepted third-party INFO
        return False
    if verbose:
        return True
    return record["message"].startswith(_MILESTONES)


def print_version(ctx: Context, param: Any, value: bool) -> None:
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    from imgopt.cli.console import get_console

    get_console().print(f"imgopt {__version__}")
    ctx.exit(0)
