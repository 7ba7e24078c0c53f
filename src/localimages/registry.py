"""Durable URL -> downloaded artifact registry.

The registry is a cache of claims. An entry says "this URL was saved at
this path", and nothing more: every consumer must call ``validate()``
before trusting it, since files can disappear between runs.
"""

from __future__ import annotations

import asyncio
import hashlib
from collections.abc import AsyncIterator, Iterator, Mapping
from contextlib import asynccontextmanager
from typing import Any

from loguru import logger

from localimages.config import ImageMeta
from localimages.vault import FileLookup


class DownloadRegistry:
    """Mapping from source URL (exact string) to ImageMeta."""

    def __init__(
        self,
        lookup: FileLookup,
        entries: Mapping[str, ImageMeta] | None = None,
    ) -> None:
        self._lookup = lookup
        self._entries: dict[str, ImageMeta] = dict(entries or {})
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._dirty = False

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: object) -> bool:
        return url in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def items(self) -> Iterator[tuple[str, ImageMeta]]:
        return iter(self._entries.items())

    @property
    def dirty(self) -> bool:
        """True when entries changed since load or the last mark_clean()."""
        return self._dirty

    def mark_clean(self) -> None:
        self._dirty = False

    def lookup(self, url: str) -> ImageMeta | None:
        """Return the recorded metadata for ``url`` without validating it."""
        return self._entries.get(url)

    def validate(self, meta: ImageMeta, strict: bool = False) -> bool:
        """Check that the artifact behind ``meta`` still exists.

        Args:
            meta: Entry to check
            strict: Also require the stored size to match the recorded one

        Returns:
            True if the entry can be trusted right now
        """
        if not self._lookup.exists(meta.file_path):
            logger.debug(f"Registered file no longer exists: {meta.file_path}")
            return False
        if strict and meta.size is not None:
            actual = self._lookup.size(meta.file_path)
            if actual != meta.size:
                logger.debug(
                    f"Size mismatch for {meta.file_path}: recorded {meta.size}, found {actual}"
                )
                return False
        return True

    async def verify_fingerprint(self, meta: ImageMeta) -> bool:
        """Compare the stored file's sha256 with the recorded one.

        Entries without a recorded digest (older data) are accepted.
        """
        if not meta.sha256:
            return True
        try:
            data = await self._lookup.read_bytes(meta.file_path)
        except (OSError, ValueError) as e:
            logger.debug(f"Cannot read {meta.file_path} for fingerprint check: {e}")
            return False
        return hashlib.sha256(data).hexdigest() == meta.sha256

    def resolve(self, url: str, strict: bool = False) -> ImageMeta | None:
        """lookup() followed by validate(); None when absent or stale."""
        meta = self.lookup(url)
        if meta is None:
            return None
        if not self.validate(meta, strict=strict):
            logger.info(f"File for {url} no longer exists at {meta.file_path}")
            return None
        return meta

    def record(self, url: str, meta: ImageMeta) -> None:
        """Insert or overwrite the entry for ``url``."""
        current = self._entries.get(url)
        if current is not None and current == meta:
            return
        self._entries[url] = meta
        self._dirty = True

    def claimed_by(self, file_path: str) -> str | None:
        """Return the URL whose entry points at ``file_path``, if any."""
        for url, meta in self._entries.items():
            if meta.file_path == file_path:
                return url
        return None

    @asynccontextmanager
    async def lock(self, url: str) -> AsyncIterator[None]:
        """Serialize resolutions of one URL.

        The lock is dropped once no coroutine holds or waits for it.
        """
        lock = self._locks.setdefault(url, asyncio.Lock())
        self._lock_users[url] = self._lock_users.get(url, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[url] -= 1
            if not self._lock_users[url]:
                del self._lock_users[url]
                del self._locks[url]

    def to_dict(self) -> dict[str, Any]:
        """Serialize with on-disk keys (``filePath`` ...)."""
        return {
            url: meta.model_dump(mode="json", by_alias=True, exclude_none=True)
            for url, meta in self._entries.items()
        }

    @classmethod
    def from_dict(
        cls, lookup: FileLookup, data: Mapping[str, Any] | None
    ) -> DownloadRegistry:
        """Build a registry from a persisted mapping.

        Entries that cannot be parsed are dropped with a warning rather than
        failing the whole load.
        """
        entries: dict[str, ImageMeta] = {}
        for url, raw in (data or {}).items():
            if isinstance(raw, ImageMeta):
                entries[url] = raw
                continue
            try:
                entries[url] = ImageMeta.model_validate(raw)
            except ValueError as e:
                logger.warning(f"Ignoring malformed registry entry for {url}: {e}")
        return cls(lookup, entries)
