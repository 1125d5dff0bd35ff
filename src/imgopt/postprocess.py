"""Helpers that work on a finished run: failed-file copy and reconciliation."""

from __future__ import annotations

import re
import shutil
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from imgopt.allocator import OutputNameAllocator
from imgopt.discovery import discover_files
from imgopt.utils.fs import ensure_dir
from imgopt.utils.text import format_error_message

# Disambiguation suffix added by OutputNameAllocator: photo_3.jpg
_COUNTER_SUFFIX = re.compile(r"_\d+$")


def copy_failed_files(failed_paths: Iterable[Path], errors_dir: Path) -> list[Path]:
    """Copy each failed original into ``errors_dir`` for manual inspection.

    Files with the same name get the same ``_<n>`` suffix scheme as
    converted outputs. A file that cannot be copied is logged and skipped;
    if the errors directory is unusable the copies made so far are returned.

    Returns:
        Paths of the copies that were written
    """
    failed_paths = list(failed_paths)
    if not failed_paths:
        return []

    try:
        ensure_dir(errors_dir)
    except OSError as e:
        logger.warning(f"Could not create {errors_dir}: {format_error_message(e)}")
        return []

    allocator = OutputNameAllocator()
    copied: list[Path] = []
    for source in failed_paths:
        try:
            dest = allocator.allocate(errors_dir / source.name)
        except OSError as e:
            # The directory itself became unusable; keep what was copied
            logger.warning(f"Could not copy into {errors_dir}: {format_error_message(e)}")
            break
        try:
            shutil.copy2(source, dest)
        except OSError as e:
            allocator.release(dest)
            logger.warning(f"Could not copy {source} to {errors_dir}: {format_error_message(e)}")
            continue
        copied.append(dest)

    logger.info(f"Copied {len(copied)} failed file(s) to {errors_dir}")
    return copied


@dataclass
class ReconcileReport:
    """Result of matching input images against converted outputs.

    Attributes:
        missing: Inputs without any output sharing their stem
        matched: (input, output) pairs
        orphaned: Outputs whose stem matches no input
    """

    missing: list[Path] = field(default_factory=list)
    matched: list[tuple[Path, Path]] = field(default_factory=list)
    orphaned: list[Path] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.missing


def _base_stem(path: Path) -> str:
    return _COUNTER_SUFFIX.sub("", path.stem)


def reconcile(input_dir: Path, output_dir: Path, recursive: bool = False) -> ReconcileReport:
    """List inputs that have no converted counterpart in ``output_dir``.

    Outputs are matched by stem, ignoring the ``_<n>`` suffix the allocator
    adds on collisions, so ``img.png`` and ``img_1.png`` both count as
    outputs for any input named ``img``. Each output is used at most once.

    Raises:
        DiscoveryError: Either directory is missing or unreadable.
    """
    output_dir = Path(output_dir)
    inputs = discover_files(input_dir, recursive=recursive, exclude=(output_dir,))
    outputs = discover_files(output_dir)

    exact: dict[str, list[Path]] = {}
    stripped: dict[str, list[Path]] = {}
    for out in sorted(outputs):
        exact.setdefault(out.stem, []).append(out)
        stripped.setdefault(_base_stem(out), []).append(out)

    used: set[Path] = set()
    report = ReconcileReport()
    # Inputs that already carry a _<n> suffix claim their exact output first
    for source in sorted(inputs, key=lambda p: (p.stem == _base_stem(p), p)):
        candidates = exact.get(source.stem, []) + stripped.get(source.stem, [])
        match = next((c for c in candidates if c not in used), None)
        if match is None:
            report.missing.append(source)
        else:
            used.add(match)
            report.matched.append((source, match))
    report.orphaned = [out for out in sorted(outputs) if out not in used]

    logger.debug(
        f"Reconciled {len(inputs)} input(s): {len(report.matched)} matched, "
        f"{len(report.missing)} missing, {len(report.orphaned)} orphaned"
    )
    return report
