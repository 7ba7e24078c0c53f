"""Atomic file writes and path safety helpers."""

from __future__ import annotations

import json
import os
import re
import sys
import tempfile
from pathlib import Path
from typing import Any

from localimages.constants import DEFAULT_JSON_INDENT

# Windows-specific retry settings for file operations
_WINDOWS_RETRY_COUNT = 5
_WINDOWS_RETRY_DELAY = 0.05  # 50ms


async def _replace_with_retry_async(src: str, dst: Path) -> None:
    """Replace ``dst`` with ``src``, retrying while Windows holds a lock on it.

    On Windows the target can be briefly locked by another process
    (antivirus, indexer, a sync client scanning the vault).
    """
    import asyncio

    import aiofiles.os

    if sys.platform != "win32":
        await aiofiles.os.replace(src, dst)
        return

    last_error: OSError | None = None
    for attempt in range(_WINDOWS_RETRY_COUNT):
        try:
            await aiofiles.os.replace(src, dst)
            return
        except PermissionError as e:
            last_error = e
            if attempt < _WINDOWS_RETRY_COUNT - 1:
                await asyncio.sleep(_WINDOWS_RETRY_DELAY * (attempt + 1))

    if last_error:
        raise last_error


def _make_temp(path: Path) -> tuple[int, str]:
    """Create a temp file next to ``path`` (same filesystem for rename)."""
    parent = path.parent
    parent.mkdir(parents=True, exist_ok=True)
    return tempfile.mkstemp(suffix=".tmp", prefix=f".{path.name}.", dir=parent)


async def atomic_write_bytes_async(path: Path, data: bytes) -> None:
    """Write bytes to file atomically (async).

    Either the complete payload ends up at ``path`` or the temp file is
    removed and the exception propagates; a half-written file is never
    visible under the final name.

    Args:
        path: Target file path
        data: Bytes to write
    """
    import aiofiles
    import aiofiles.os

    path = Path(path)
    fd, tmp_path = _make_temp(path)
    try:
        os.close(fd)
        async with aiofiles.open(tmp_path, "wb") as f:
            await f.write(data)
            await f.flush()
        await _replace_with_retry_async(tmp_path, path)
    except Exception:
        try:
            await aiofiles.os.remove(tmp_path)
        except OSError:
            pass
        raise


async def atomic_write_text_async(
    path: Path,
    content: str,
    encoding: str = "utf-8",
) -> None:
    """Write text to file atomically, keeping line endings byte-for-byte."""
    await atomic_write_bytes_async(path, content.encode(encoding))


async def atomic_write_json_async(
    path: Path,
    obj: Any,
    indent: int = DEFAULT_JSON_INDENT,
    ensure_ascii: bool = False,
) -> None:
    """Write JSON to file atomically (async version)."""
    content = json.dumps(obj, indent=indent, ensure_ascii=ensure_ascii)
    await atomic_write_text_async(path, content + "\n", encoding="utf-8")


def validate_path_within_base(path: Path, base_dir: Path) -> Path:
    """Validate that a path is within the base directory.

    Args:
        path: Path to validate
        base_dir: Base directory that path must be within

    Returns:
        Resolved absolute path

    Raises:
        ValueError: If path is outside base directory
    """
    resolved = path.resolve()
    base_resolved = base_dir.resolve()

    try:
        resolved.relative_to(base_resolved)
    except ValueError:
        raise ValueError(f"Path traversal detected: {path} is outside {base_dir}")

    return resolved


def sanitize_error_message(error: Exception | str) -> str:
    """Remove absolute paths and user names from an error message.

    Args:
        error: Exception (or message) to sanitize

    Returns:
        Sanitized error message
    """
    msg = str(error)

    # Usernames first, before the generic path replacement swallows them
    msg = re.sub(r"/home/[^/\s]+/", "/home/[USER]/", msg)
    msg = re.sub(r"/Users/[^/\s]+/", "/Users/[USER]/", msg)
    msg = re.sub(r"C:\\Users\\[^\\]+\\", r"C:\\Users\\[USER]\\", msg)

    # Absolute paths (Unix style), but leave URLs alone
    msg = re.sub(r"(?<![:/\w])/(?:[a-zA-Z0-9_\-.\[\]]+/)+[a-zA-Z0-9_\-.]*", "[PATH]", msg)

    # Absolute paths (Windows style)
    msg = re.sub(r"[A-Za-z]:\\[a-zA-Z0-9_\-\\. \[\]]+", "[PATH]", msg)

    return msg


def validate_file_size(path: Path, max_size_bytes: int) -> None:
    """Validate that a file is within size limits.

    Raises:
        ValueError: If file exceeds size limit
    """
    if not path.exists():
        return

    size = path.stat().st_size
    if size > max_size_bytes:
        raise ValueError(
            f"File too large: {path.name} is {size} bytes (max: {max_size_bytes} bytes)"
        )
