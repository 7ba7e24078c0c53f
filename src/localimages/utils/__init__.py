"""localimages utilities."""

from localimages.utils.mime import (
    detect_image_extension,
    get_extension_from_mime,
    get_extension_from_url,
    normalize_image_extension,
)
from localimages.utils.paths import (
    filename_from_url,
    join_vault_path,
    relative_link,
    sanitize_filename,
    split_name,
    vault_parent,
)
from localimages.utils.text import format_error_message

__all__ = [
    # MIME
    "detect_image_extension",
    "get_extension_from_mime",
    "get_extension_from_url",
    "normalize_image_extension",
    # Paths
    "filename_from_url",
    "join_vault_path",
    "relative_link",
    "sanitize_filename",
    "split_name",
    "vault_parent",
    # Text
    "format_error_message",
]
