"""Centralized constants for localimages.

This module contains the hardcoded defaults used throughout the codebase.
Grouping them here makes it easier to:
- Find and modify default values
- Understand system limits at a glance
- Keep the persisted defaults and the CLI in sync
"""

from __future__ import annotations

# =============================================================================
# Network
# =============================================================================

DEFAULT_REQUEST_TIMEOUT = 30.0  # seconds, per image request
DEFAULT_MAX_CONCURRENCY = 5  # concurrent downloads per document
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (compatible; localimages/0.3.0; +https://pypi.org/project/localimages/)"
)
REMOTE_SCHEMES = frozenset({"http", "https"})

# =============================================================================
# File Size Limits
# =============================================================================

DEFAULT_MAX_IMAGE_BYTES = 20 * 1024 * 1024  # 20 MB - single image
MAX_DOCUMENT_SIZE = 50 * 1024 * 1024  # 50 MB - Markdown note
MAX_DATA_FILE_SIZE = 10 * 1024 * 1024  # 10 MB - persisted plugin data

# =============================================================================
# Storage
# =============================================================================

DEFAULT_ATTACHMENT_LOCATION = "vault_folder"
DEFAULT_ATTACHMENT_FOLDER = "attachments"
DEFAULT_FILE_NAMING = "url"
DEFAULT_LINK_STYLE = "relative"
HASH_NAME_LENGTH = 16  # hex chars of sha256 used by the "hash" naming policy
MAX_FILENAME_LENGTH = 100
FALLBACK_IMAGE_NAME = "image"

# =============================================================================
# MIME Types
# =============================================================================

MIME_TO_EXTENSION: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/pjpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/svg+xml": ".svg",
    "image/bmp": ".bmp",
    "image/x-ms-bmp": ".bmp",
    "image/tiff": ".tiff",
    "image/x-icon": ".ico",
    "image/vnd.microsoft.icon": ".ico",
    "image/avif": ".avif",
    "image/heic": ".heic",
}

IMAGE_EXTENSIONS = frozenset(
    {
        ".jpg",
        ".jpeg",
        ".png",
        ".gif",
        ".webp",
        ".svg",
        ".bmp",
        ".tif",
        ".tiff",
        ".ico",
        ".avif",
        ".heic",
    }
)

# =============================================================================
# Logging
# =============================================================================

DEFAULT_LOG_LEVEL = "DEBUG"
DEFAULT_LOG_DIR = None  # file logging disabled unless configured
DEFAULT_LOG_ROTATION = "10 MB"
DEFAULT_LOG_RETENTION = "7 days"

# =============================================================================
# Paths and Filenames
# =============================================================================

DATA_DIRNAME = ".localimages"
DATA_FILENAME = "data.json"
DEFAULT_JSON_INDENT = 2

# =============================================================================
# Commands
# =============================================================================

COMMAND_DOWNLOAD_CURRENT_NOTE = "download-local-images-current-note"
COMMAND_DOWNLOAD_CURRENT_NOTE_NAME = "Download images locally for current note"
SHORTCUT_TOOLTIP = "Download images locally"
SHORTCUT_ICON = "download"
NO_DOCUMENT_MESSAGE = "Please open a markdown file first."
NO_DOCUMENT_SHORTCUT_MESSAGE = "Please open a markdown file to download images."
MARKDOWN_EXTENSIONS = frozenset({".md", ".markdown"})
