"""Path and filename helpers.

Vault paths are always POSIX strings relative to the vault root, whatever
the host OS.
"""

from __future__ import annotations

import posixpath
from pathlib import PurePosixPath
from urllib.parse import unquote, urlparse

from localimages.constants import FALLBACK_IMAGE_NAME, MAX_FILENAME_LENGTH


def sanitize_filename(name: str, max_length: int = MAX_FILENAME_LENGTH) -> str:
    """Sanitize filename for cross-platform compatibility.

    Args:
        name: Filename to sanitize
        max_length: Maximum length of the result (extension included)

    Returns:
        Sanitized filename, never empty
    """
    # Characters invalid on Windows, plus '#' and '^' which break wiki links
    invalid_chars = '<>:"/\\|?*#^[]'
    for char in invalid_chars:
        name = name.replace(char, "_")
    name = "".join(c for c in name if ord(c) >= 32)
    name = name.strip(". ")
    if len(name) > max_length:
        stem, dot, ext = name.rpartition(".")
        if dot and 0 < len(ext) <= 5:
            name = stem[: max_length - len(ext) - 1].rstrip(". ") + "." + ext
        else:
            name = name[:max_length]
    return name or FALLBACK_IMAGE_NAME


def filename_from_url(url: str) -> str:
    """Return the unquoted last path segment of a URL ("" if there is none)."""
    path = unquote(urlparse(url).path)
    return PurePosixPath(path).name


def split_name(name: str) -> tuple[str, str]:
    """Split "photo.final.png" into ("photo.final", ".png")."""
    path = PurePosixPath(name)
    return path.stem if path.suffix else path.name, path.suffix


def vault_parent(path: str) -> str:
    """Folder of a vault-relative path ("" for the vault root)."""
    parent = posixpath.dirname(path)
    return "" if parent in (".", "/") else parent


def join_vault_path(*parts: str) -> str:
    """Join vault path parts, ignoring empty ones."""
    cleaned = [p.strip("/") for p in parts if p and p.strip("/")]
    return posixpath.join(*cleaned) if cleaned else ""


def relative_link(target: str, document_path: str) -> str:
    """Path of ``target`` relative to the folder containing ``document_path``.

    Examples:
        >>> relative_link("attachments/a.png", "notes/day.md")
        '../attachments/a.png'
        >>> relative_link("notes/a.png", "notes/day.md")
        'a.png'
    """
    start = vault_parent(document_path) or "."
    return posixpath.relpath(target, start)
