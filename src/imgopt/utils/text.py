"""Text helpers for log and summary messages."""

from __future__ import annotations


def format_error_message(error: BaseException, max_length: int = 200) -> str:
    """Render an exception as a single short line.

    Uses the exception message when there is one, otherwise the class name,
    collapses whitespace and truncates to ``max_length``.
    """
    message = str(error).strip() or type(error).__name__
    message = " ".join(message.split())
    if len(message) > max_length:
        message = message[: max_length - 3] + "..."
    return message
