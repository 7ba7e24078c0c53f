"""MIME type and file signature helpers for downloaded images."""

from __future__ import annotations

from pathlib import PurePosixPath
from urllib.parse import unquote, urlparse

import filetype

from localimages.constants import IMAGE_EXTENSIONS, MIME_TO_EXTENSION


def normalize_image_extension(ext: str) -> str:
    """Normalize an extension to lowercase with a leading dot.

    Examples:
        >>> normalize_image_extension("JPEG")
        '.jpg'
        >>> normalize_image_extension(".png")
        '.png'
    """
    ext = ext.lower()
    if not ext.startswith("."):
        ext = f".{ext}"
    if ext == ".jpeg":
        return ".jpg"
    return ext


def clean_content_type(content_type: str | None) -> str:
    """Strip parameters from a Content-Type header ("image/png; q=1" -> "image/png")."""
    if not content_type:
        return ""
    return content_type.split(";")[0].strip().lower()


def get_extension_from_mime(mime_type: str | None, default: str | None = None) -> str | None:
    """Get file extension from MIME type.

    Examples:
        >>> get_extension_from_mime("image/jpeg")
        '.jpg'
        >>> get_extension_from_mime("image/svg+xml; charset=utf-8")
        '.svg'
        >>> get_extension_from_mime("text/html") is None
        True
    """
    return MIME_TO_EXTENSION.get(clean_content_type(mime_type), default)


def is_image_mime(mime_type: str | None) -> bool:
    return clean_content_type(mime_type).startswith("image/")


def get_extension_from_url(url: str) -> str | None:
    """Extract a known image extension from the URL path (query ignored)."""
    path = unquote(urlparse(url).path)
    suffix = PurePosixPath(path).suffix.lower()
    if suffix in IMAGE_EXTENSIONS:
        return normalize_image_extension(suffix)
    return None


def detect_image_extension(data: bytes) -> str | None:
    """Identify an image by its byte signature.

    SVG is text and has no signature; callers rely on the Content-Type
    header for it.
    """
    kind = filetype.guess(data)
    if kind is not None and kind.mime.startswith("image/"):
        return normalize_image_extension(kind.extension)
    if data.lstrip()[:5].lower() in (b"<svg ", b"<?xml") and b"<svg" in data[:1024].lower():
        return ".svg"
    return None
