"""imgopt utilities."""

from imgopt.utils.fs import (
    atomic_write_bytes,
    ensure_dir,
    format_duration,
    remove_quietly,
)
from imgopt.utils.text import format_error_message

__all__ = [
    "atomic_write_bytes",
    "ensure_dir",
    "format_duration",
    "format_error_message",
    "remove_quietly",
]
