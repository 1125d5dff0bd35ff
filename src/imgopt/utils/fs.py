"""File system helpers: directory creation, atomic writes, formatting."""

from __future__ import annotations

import os
import sys
import tempfile
import time
from pathlib import Path

# Windows-specific retry settings for file operations
_WINDOWS_RETRY_COUNT = 5
_WINDOWS_RETRY_DELAY = 0.05  # 50ms


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary.

    Returns:
        The same path (for chaining)
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def _replace_with_retry(src: str, dst: Path) -> None:
    """Replace file, retrying on Windows where the target can be briefly locked."""
    if sys.platform != "win32":
        os.replace(src, dst)
        return

    last_error: OSError | None = None
    for attempt in range(_WINDOWS_RETRY_COUNT):
        try:
            os.replace(src, dst)
            return
        except PermissionError as e:
            last_error = e
            if attempt < _WINDOWS_RETRY_COUNT - 1:
                time.sleep(_WINDOWS_RETRY_DELAY * (attempt + 1))

    if last_error:
        raise last_error


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write bytes to ``path`` atomically using temp file + rename.

    Either the complete content appears at ``path`` or nothing does:
    on any error the temp file is removed and the exception re-raised.

    Args:
        path: Target file path (parent directory must be writable)
        data: File content
    """
    path = Path(path)
    fd, tmp_path = tempfile.mkstemp(
        suffix=".tmp",
        prefix=f".{path.name}.",
        dir=path.parent,
    )
    fd_closed = False
    try:
        with os.fdopen(fd, "wb") as f:
            fd_closed = True  # fdopen takes ownership of fd
            f.write(data)
        _replace_with_retry(tmp_path, path)
    except BaseException:
        if not fd_closed:
            try:
                os.close(fd)
            except OSError:
                pass
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def remove_quietly(path: Path) -> bool:
    """Delete ``path`` if it exists. Returns True if a file was removed."""
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False


def format_duration(seconds: float) -> str:
    """Format seconds as ``12.3s`` or ``4m 05s``."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{minutes}m {secs:02d}s"
