"""Text helpers for user-facing messages."""

from __future__ import annotations

from localimages.security import sanitize_error_message


def format_error_message(error: Exception | str, max_length: int = 200) -> str:
    """Make an error readable on one line without leaking local paths.

    Args:
        error: Exception or message
        max_length: Truncate longer messages with "..."

    Returns:
        Single-line, sanitized message
    """
    if isinstance(error, Exception):
        text = str(error) or type(error).__name__
    else:
        text = error
    text = " ".join(sanitize_error_message(text).split())
    if len(text) > max_length:
        text = text[: max_length - 3] + "..."
    return text
