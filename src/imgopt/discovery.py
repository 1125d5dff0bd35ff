"""File discovery for batch conversion."""

from __future__ import annotations

import os
from collections.abc import Iterable
from pathlib import Path

from loguru import logger

from imgopt.exceptions import DiscoveryError
from imgopt.formats import is_supported_source


def discover_files(
    root: Path,
    recursive: bool = False,
    exclude: Iterable[Path] = (),
) -> list[Path]:
    """Discover eligible image files under ``root``.

    Traversal is depth-first in the order the filesystem returns directory
    entries (not sorted); that order becomes the task submission order.
    Subdirectories are entered only when ``recursive`` is set, and never
    when they appear in ``exclude``. Directory symlinks are not followed.

    Args:
        root: Directory to scan
        recursive: Descend into subdirectories
        exclude: Directories to skip (e.g. the run's own output directory)

    Returns:
        Absolute paths of eligible files

    Raises:
        DiscoveryError: If ``root`` is missing, not a directory, or any
            directory in the walk cannot be read. Nothing is returned in
            that case, even if some files were already found.
    """
    root = Path(root).expanduser()
    if not root.exists():
        raise DiscoveryError(root, "directory does not exist")
    if not root.is_dir():
        raise DiscoveryError(root, "not a directory")

    root = root.resolve()
    excluded = {Path(p).expanduser().resolve() for p in exclude}
    files: list[Path] = []

    def walk(directory: Path) -> None:
        try:
            with os.scandir(directory) as entries:
                for entry in entries:
                    entry_path = Path(entry.path)
                    if entry.is_dir(follow_symlinks=False):
                        if recursive and entry_path not in excluded:
                            walk(entry_path)
                    elif entry.is_file() and is_supported_source(entry_path):
                        files.append(entry_path)
        except OSError as e:
            raise DiscoveryError(directory, e.strerror or str(e)) from e

    walk(root)
    logger.debug(f"Discovered {len(files)} image(s) under {root}")
    return files
