"""Collision-safe placement of downloaded images inside the vault."""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import Callable
from pathlib import Path, PurePosixPath

import aiofiles.os
from loguru import logger

from localimages.config import LocalImagesSettings
from localimages.constants import FALLBACK_IMAGE_NAME, HASH_NAME_LENGTH
from localimages.errors import StorageError
from localimages.utils.mime import get_extension_from_url, normalize_image_extension
from localimages.utils.paths import (
    filename_from_url,
    join_vault_path,
    sanitize_filename,
    split_name,
    vault_parent,
)
from localimages.vault import FileSystemVault, normalize_vault_path


class StorageWriter:
    """Choose destination paths and write image bytes atomically.

    One writer is shared by every download of a processing pass. Names
    handed out during the pass are remembered, so two concurrent downloads
    never land on the same file even before either write completes.
    """

    def __init__(self, vault: FileSystemVault, settings: LocalImagesSettings) -> None:
        self._vault = vault
        self._settings = settings
        self._lock = asyncio.Lock()
        self._reserved: set[str] = set()

    def destination_folder(self, document_path: str) -> str:
        """Vault-relative folder that receives images for ``document_path``."""
        folder = normalize_vault_path(self._settings.attachment_folder)
        location = self._settings.attachment_location
        if location == "note_folder":
            return vault_parent(normalize_vault_path(document_path))
        if location == "note_subfolder":
            return join_vault_path(vault_parent(normalize_vault_path(document_path)), folder)
        return folder

    def base_name(
        self,
        content: bytes,
        suggested_name: str,
        *,
        document_path: str,
        extension: str,
    ) -> str:
        """File name before collision handling, per the naming policy.

        Args:
            content: Image bytes
            suggested_name: Source URL (or any name to derive from)
            document_path: Note the image belongs to
            extension: Fallback extension when the URL has none
        """
        extension = normalize_image_extension(extension) if extension else ""
        naming = self._settings.file_naming
        if naming == "hash":
            stem = hashlib.sha256(content).hexdigest()[:HASH_NAME_LENGTH]
            return f"{stem}{extension}"
        if naming == "note":
            stem = PurePosixPath(normalize_vault_path(document_path)).stem
            return sanitize_filename(f"{stem or FALLBACK_IMAGE_NAME}{extension}")

        stem, suffix = split_name(sanitize_filename(filename_from_url(suggested_name)))
        url_extension = get_extension_from_url(suggested_name)
        if url_extension or (suffix and normalize_image_extension(suffix) == extension):
            return sanitize_filename(f"{stem}{suffix}")
        # Unknown or misleading suffix ("photo.php", "image.jpg?x"): keep it in the stem
        return sanitize_filename(f"{stem}{suffix}{extension}")

    async def _same_content(self, target: Path, path: str, content: bytes) -> bool:
        try:
            if await aiofiles.os.path.getsize(target) != len(content):
                return False
            existing = await self._vault.read_bytes(path)
        except (OSError, ValueError):
            return False
        return existing == content

    async def store(
        self,
        content: bytes,
        suggested_name: str,
        *,
        document_path: str,
        extension: str = "",
        replace: str | None = None,
        is_claimed: Callable[[str], bool] | None = None,
    ) -> str:
        """Persist ``content`` and return its vault-relative path.

        Args:
            content: Image bytes
            suggested_name: Source URL used for naming
            document_path: Note the image belongs to
            extension: Extension detected from the response
            replace: Path previously recorded for the same URL, which may
                be overwritten
            is_claimed: Tells whether another registry entry owns a path;
                such paths are never handed out, even when the file is gone

        Returns:
            Vault-relative POSIX path of the stored file

        Raises:
            StorageError: If the destination is invalid or the write fails
        """
        folder = self.destination_folder(document_path)
        name = self.base_name(
            content, suggested_name, document_path=document_path, extension=extension
        )
        stem, suffix = split_name(name)
        index = 1 if self._settings.file_naming == "note" else 0

        async with self._lock:
            while True:
                candidate_name = f"{stem}-{index}{suffix}" if index else f"{stem}{suffix}"
                path = join_vault_path(folder, candidate_name)
                index += 1

                try:
                    target = self._vault.resolve(path)
                except ValueError as e:
                    raise StorageError(f"Invalid destination {path}: {e}", path=path) from e

                if path in self._reserved:
                    continue
                if path == replace:
                    break
                # Owned by another URL even when its file is gone
                if is_claimed is not None and is_claimed(path):
                    continue
                if await aiofiles.os.path.exists(target):
                    if await self._same_content(target, path, content):
                        logger.debug(f"Reusing identical file: {path}")
                        self._reserved.add(path)
                        return path
                    continue
                break
            self._reserved.add(path)

        try:
            await self._vault.write_bytes(path, content)
        except (OSError, ValueError) as e:
            self._reserved.discard(path)
            raise StorageError(f"Cannot write {path}: {e}", path=path) from e

        logger.debug(f"Stored {len(content)} bytes at {path}")
        return path
